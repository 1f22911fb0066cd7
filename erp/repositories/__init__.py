"""Data access layer."""
from erp.repositories.base import Repository, QuerySpec, FieldRef
from erp.repositories.product import ProductRepository

__all__ = ["Repository", "QuerySpec", "FieldRef", "ProductRepository"]
