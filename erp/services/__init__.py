"""Business logic services."""
from erp.services.product_service import ProductService
from erp.services.reference_service import ReferenceService

__all__ = ["ProductService", "ReferenceService"]
