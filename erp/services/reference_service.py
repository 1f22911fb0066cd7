"""
Reference data service: product types, brands, models, colors and
conditions, plus the cascading dropdown listings the product form uses.
"""
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.config import settings
from erp.core.retry import transient_retry
from erp.error_handlers import ResourceNotFoundError, ValidationFailureError
from erp.logging_config import get_logger
from erp.models.reference import ProductType, Brand, Model, Color, Condition
from erp.repositories.base import Repository, QuerySpec

logger = get_logger("reference_service")

REFERENCE_MODELS = (ProductType, Brand, Model, Color, Condition)


class ReferenceService:
    """CRUD and dropdowns for every reference entity."""

    def __init__(self, session: AsyncSession, actor: Optional[str] = None):
        self.session = session
        self.actor = actor or settings.system_actor
        self._repos = {model: Repository(session, model) for model in REFERENCE_MODELS}

    def repo(self, model: type) -> Repository:
        return self._repos[model]

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    async def list_all(self, model: type) -> list[Any]:
        return await self.repo(model).find(self._ordered())

    async def get(self, model: type, entity_id: int) -> Any:
        entity = await self.repo(model).get_by_id(entity_id)
        if entity is None:
            raise ResourceNotFoundError(model.__name__, entity_id)
        return entity

    @transient_retry
    async def create(self, model: type, data: BaseModel) -> Any:
        values = data.model_dump()
        await self._validate_relations(model, values)
        entity = await self.repo(model).create(model(**values), self.actor)
        await self.session.commit()
        logger.info("%s %s created (%s) by %s", model.__name__, entity.id, entity.name, self.actor)
        return entity

    @transient_retry
    async def update(self, model: type, entity_id: int, data: BaseModel) -> Any:
        entity = await self.get(model, entity_id)
        changes = data.model_dump(exclude_unset=True)

        nulled = sorted(
            key for key, value in changes.items()
            if value is None and not model.__table__.columns[key].nullable
        )
        if nulled:
            raise ValidationFailureError(
                "Required fields cannot be cleared",
                errors=[{"field": key, "message": "must not be null"} for key in nulled],
            )

        merged = {column: getattr(entity, column) for column in ("product_type_id", "brand_id") if hasattr(entity, column)}
        merged.update(changes)
        await self._validate_relations(model, merged)

        for key, value in changes.items():
            setattr(entity, key, value)
        await self.repo(model).update(entity, self.actor)
        await self.session.commit()
        return entity

    @transient_retry
    async def delete(self, model: type, entity_id: int) -> None:
        await self.repo(model).delete(entity_id, self.actor)
        await self.session.commit()
        logger.info("%s %s deleted by %s", model.__name__, entity_id, self.actor)

    # ------------------------------------------------------------------
    # Relation checks
    # ------------------------------------------------------------------

    async def is_valid_brand_for_product_type(self, brand_id: int, product_type_id: int) -> bool:
        brand = await self.repo(Brand).get_by_id(brand_id)
        return brand is not None and brand.product_type_id == product_type_id

    async def is_valid_model_for_brand(self, model_id: int, brand_id: int) -> bool:
        model = await self.repo(Model).get_by_id(model_id)
        return model is not None and model.brand_id == brand_id

    async def _validate_relations(self, model: type, values: dict) -> None:
        if model not in (Brand, Model):
            return

        product_type_id = values.get("product_type_id")
        if not await self.repo(ProductType).exists(product_type_id):
            raise ValidationFailureError(
                f"Product type '{product_type_id}' does not exist",
                product_type_id=product_type_id,
            )

        if model is Model:
            brand_id = values.get("brand_id")
            if not await self.is_valid_brand_for_product_type(brand_id, product_type_id):
                raise ValidationFailureError(
                    f"Brand '{brand_id}' does not belong to product type '{product_type_id}'",
                    brand_id=brand_id,
                    product_type_id=product_type_id,
                )

    # ------------------------------------------------------------------
    # Dropdowns (sorted by sort_order, then name)
    # ------------------------------------------------------------------

    @staticmethod
    def _ordered(spec: Optional[QuerySpec] = None) -> QuerySpec:
        return (spec or QuerySpec()).order_by("sort_order").order_by("name")

    async def product_type_options(self) -> list[ProductType]:
        return await self.repo(ProductType).find(self._ordered())

    async def brand_options(self, product_type_id: Optional[int] = None) -> list[Brand]:
        spec = QuerySpec()
        if product_type_id is not None:
            spec.where("product_type_id", "eq", product_type_id)
        return await self.repo(Brand).find(self._ordered(spec))

    async def model_options(
        self,
        product_type_id: Optional[int] = None,
        brand_id: Optional[int] = None,
    ) -> list[dict]:
        spec = QuerySpec().include("brand")
        if product_type_id is not None:
            spec.where("product_type_id", "eq", product_type_id)
        if brand_id is not None:
            spec.where("brand_id", "eq", brand_id)
        models = await self.repo(Model).find(self._ordered(spec))
        return [
            {
                "id": model.id,
                "name": model.name,
                "description": model.description,
                "sort_order": model.sort_order,
                "is_active": model.is_active,
                "product_type_id": model.product_type_id,
                "brand_id": model.brand_id,
                "brand_name": model.brand.name if model.brand is not None else None,
                "release_year": model.release_year,
            }
            for model in models
        ]

    async def color_options(self) -> list[Color]:
        return await self.repo(Color).find(self._ordered())

    async def condition_options(self) -> list[Condition]:
        return await self.repo(Condition).find(self._ordered())
