"""
Reference data API: CRUD for product types, brands, models, colors and
conditions.
"""
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from erp.api.deps import get_reference_service
from erp.models.reference import ProductType, Brand, Model, Color, Condition
from erp.services.reference_service import ReferenceService
from erp.schemas.reference import (
    ProductTypeCreate, ProductTypeUpdate, ProductTypeResponse,
    BrandCreate, BrandUpdate, BrandResponse,
    ModelCreate, ModelUpdate, ModelResponse,
    ColorCreate, ColorUpdate, ColorResponse,
    ConditionCreate, ConditionUpdate, ConditionResponse,
)

router = APIRouter(prefix="/references", tags=["Reference data"])


class RelationCheck(BaseModel):
    valid: bool


def register_crud(
    path: str,
    model: type,
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    response_schema: type[BaseModel],
) -> None:
    """Add list/get/create/update/delete routes for one reference entity."""
    label = model.__name__

    async def list_entities(service: ReferenceService = Depends(get_reference_service)):
        return await service.list_all(model)

    async def get_entity(entity_id: int, service: ReferenceService = Depends(get_reference_service)):
        return await service.get(model, entity_id)

    async def create_entity(
        payload: create_schema,
        service: ReferenceService = Depends(get_reference_service)
    ):
        return await service.create(model, payload)

    async def update_entity(
        entity_id: int,
        payload: update_schema,
        service: ReferenceService = Depends(get_reference_service)
    ):
        return await service.update(model, entity_id, payload)

    async def delete_entity(entity_id: int, service: ReferenceService = Depends(get_reference_service)):
        await service.delete(model, entity_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    router.add_api_route(
        f"/{path}", list_entities, methods=["GET"],
        response_model=list[response_schema], name=f"list_{path}", summary=f"List {label} entries"
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}", get_entity, methods=["GET"],
        response_model=response_schema, name=f"get_{path}", summary=f"Get a {label}"
    )
    router.add_api_route(
        f"/{path}", create_entity, methods=["POST"], status_code=status.HTTP_201_CREATED,
        response_model=response_schema, name=f"create_{path}", summary=f"Create a {label}"
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}", update_entity, methods=["PUT"],
        response_model=response_schema, name=f"update_{path}", summary=f"Update a {label}"
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}", delete_entity, methods=["DELETE"],
        status_code=status.HTTP_204_NO_CONTENT, name=f"delete_{path}", summary=f"Delete a {label}"
    )


@router.get("/brands/{brand_id}/valid-for/{product_type_id}", response_model=RelationCheck)
async def check_brand_for_product_type(
    brand_id: int,
    product_type_id: int,
    service: ReferenceService = Depends(get_reference_service)
):
    """Whether the brand belongs to the product type."""
    return RelationCheck(valid=await service.is_valid_brand_for_product_type(brand_id, product_type_id))


@router.get("/models/{model_id}/valid-for/{brand_id}", response_model=RelationCheck)
async def check_model_for_brand(
    model_id: int,
    brand_id: int,
    service: ReferenceService = Depends(get_reference_service)
):
    """Whether the model belongs to the brand."""
    return RelationCheck(valid=await service.is_valid_model_for_brand(model_id, brand_id))


register_crud("product-types", ProductType, ProductTypeCreate, ProductTypeUpdate, ProductTypeResponse)
register_crud("brands", Brand, BrandCreate, BrandUpdate, BrandResponse)
register_crud("models", Model, ModelCreate, ModelUpdate, ModelResponse)
register_crud("colors", Color, ColorCreate, ColorUpdate, ColorResponse)
register_crud("conditions", Condition, ConditionCreate, ConditionUpdate, ConditionResponse)
