"""
SQLAlchemy models for the ERP inventory service.
Import all models here to ensure they're registered with SQLAlchemy.
"""
from erp.models.product import Product, ProductStatus, STATUS_TRANSITIONS
from erp.models.reference import ProductType, Brand, Model, Color, Condition

__all__ = [
    "Product",
    "ProductStatus",
    "STATUS_TRANSITIONS",
    "ProductType",
    "Brand",
    "Model",
    "Color",
    "Condition",
]
