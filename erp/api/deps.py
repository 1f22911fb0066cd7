"""Shared FastAPI dependencies."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.database import get_db
from erp.core.security import get_current_actor
from erp.services.product_service import ProductService
from erp.services.reference_service import ReferenceService


async def get_product_service(
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_current_actor),
) -> ProductService:
    return ProductService(db, actor)


async def get_reference_service(
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_current_actor),
) -> ReferenceService:
    return ReferenceService(db, actor)
