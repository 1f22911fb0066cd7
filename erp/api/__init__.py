"""API Router."""
from fastapi import APIRouter

from erp.api import products, references

api_router = APIRouter(prefix="/api")

# Include all route modules
api_router.include_router(products.router)
api_router.include_router(references.router)

__all__ = ["api_router"]
