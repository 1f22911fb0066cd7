"""
Products API endpoints: CRUD, stock, pricing, status, search and reports.
"""
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from fastapi import APIRouter, Depends, Query, Response, status

from erp.api.deps import get_product_service, get_reference_service
from erp.core.config import settings
from erp.models.product import ProductStatus
from erp.services.product_service import ProductService
from erp.services.reference_service import ReferenceService
from erp.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse,
    ProductFilter,
    StockUpdate,
    StockAdjustment,
    PriceUpdate,
    MarginUpdate,
    StatusUpdate,
    ProductBulkCreate,
    BulkStockAdjustment,
    BulkPriceChange,
    BulkStatusChange,
    BulkDelete,
    BulkOperationResult,
)
from erp.schemas.report import (
    ProductStats,
    CategoryStats,
    BrandStats,
    SupplierStats,
    ValueResponse,
    CountResponse,
)
from erp.schemas.reference import (
    DropdownOption,
    BrandOption,
    ModelOption,
    ColorOption,
    ConditionOption,
)

router = APIRouter(prefix="/products", tags=["Products"])


# ----------------------------------------------------------------------
# Listing and search
# ----------------------------------------------------------------------

@router.get("", response_model=list[ProductResponse])
async def list_products(service: ProductService = Depends(get_product_service)):
    """List all products, in insertion order."""
    return await service.get_all()


def product_filter(
    search: Optional[str] = None,
    supplier_name: Optional[str] = None,
    import_batch: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    condition: Optional[str] = None,
    product_status: Optional[ProductStatus] = Query(None, alias="status"),
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    min_margin_percentage: Optional[Decimal] = None,
    min_stock: Optional[int] = Query(None, ge=0),
    max_stock: Optional[int] = Query(None, ge=0),
    low_stock_only: bool = False,
    purchase_date_from: Optional[datetime] = None,
    purchase_date_to: Optional[datetime] = None,
    arrival_date_from: Optional[datetime] = None,
    arrival_date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: Optional[str] = None,
    sort_descending: bool = False,
) -> ProductFilter:
    return ProductFilter(
        search=search,
        supplier_name=supplier_name,
        import_batch=import_batch,
        category=category,
        brand=brand,
        condition=condition,
        status=product_status,
        min_price=min_price,
        max_price=max_price,
        min_margin_percentage=min_margin_percentage,
        min_stock=min_stock,
        max_stock=max_stock,
        low_stock_only=low_stock_only,
        purchase_date_from=purchase_date_from,
        purchase_date_to=purchase_date_to,
        arrival_date_from=arrival_date_from,
        arrival_date_to=arrival_date_to,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_descending=sort_descending,
    )


@router.get("/list", response_model=ProductListResponse)
async def list_products_paged(
    criteria: ProductFilter = Depends(product_filter),
    service: ProductService = Depends(get_product_service)
):
    """
    List products with pagination, filtering and sorting.

    - **search**: Match in name, description or model
    - **low_stock_only**: Only products at or below their minimum level
    - **sort_by**: One of the whitelisted columns (e.g. selling_price, created_at)
    """
    return await service.get_paged(criteria)


@router.get("/search", response_model=list[ProductResponse])
async def search_products(
    query: Optional[str] = Query(None, max_length=200),
    service: ProductService = Depends(get_product_service)
):
    """Search by name or description (case-insensitive)."""
    return await service.search(query)


@router.get("/category/{category}", response_model=list[ProductResponse])
async def get_by_category(category: str, service: ProductService = Depends(get_product_service)):
    return await service.get_by_category(category)


@router.get("/brand/{brand}", response_model=list[ProductResponse])
async def get_by_brand(brand: str, service: ProductService = Depends(get_product_service)):
    return await service.get_by_brand(brand)


@router.get("/supplier/{supplier_name}", response_model=list[ProductResponse])
async def get_by_supplier(supplier_name: str, service: ProductService = Depends(get_product_service)):
    return await service.get_by_supplier(supplier_name)


@router.get("/batch/{import_batch}", response_model=list[ProductResponse])
async def get_by_batch(import_batch: str, service: ProductService = Depends(get_product_service)):
    return await service.get_by_import_batch(import_batch)


@router.get("/condition/{condition}", response_model=list[ProductResponse])
async def get_by_condition(condition: str, service: ProductService = Depends(get_product_service)):
    return await service.get_by_condition(condition)


@router.get("/status/{product_status}", response_model=list[ProductResponse])
async def get_by_status(product_status: ProductStatus, service: ProductService = Depends(get_product_service)):
    return await service.get_by_status(product_status)


@router.get("/supplier-city/{supplier_city}", response_model=list[ProductResponse])
async def get_by_supplier_city(supplier_city: str, service: ProductService = Depends(get_product_service)):
    return await service.get_by_supplier_city(supplier_city)


@router.get("/invoice/{invoice_number}", response_model=list[ProductResponse])
async def get_by_invoice(invoice_number: str, service: ProductService = Depends(get_product_service)):
    return await service.get_by_invoice_number(invoice_number)


@router.get("/price-range", response_model=list[ProductResponse])
async def get_by_price_range(
    min_price: Decimal = Query(..., ge=0),
    max_price: Decimal = Query(..., ge=0),
    service: ProductService = Depends(get_product_service)
):
    """Products whose selling price is within [min_price, max_price]."""
    return await service.get_by_price_range(min_price, max_price)


@router.get("/date-range", response_model=list[ProductResponse])
async def get_by_date_range(
    from_date: datetime,
    to_date: datetime,
    service: ProductService = Depends(get_product_service)
):
    """Products purchased within [from_date, to_date]."""
    return await service.get_by_date_range(from_date, to_date)


@router.get("/margin-range", response_model=list[ProductResponse])
async def get_by_margin_range(
    min_margin: Decimal,
    max_margin: Decimal,
    service: ProductService = Depends(get_product_service)
):
    """Products whose margin percentage is within [min_margin, max_margin]."""
    return await service.get_by_margin_range(min_margin, max_margin)


@router.get("/arrival-date", response_model=list[ProductResponse])
async def get_by_arrival_date(
    arrival: date = Query(..., alias="date"),
    service: ProductService = Depends(get_product_service)
):
    """Products that arrived on the given day."""
    return await service.get_by_arrival_date(arrival)


@router.get("/low-stock", response_model=list[ProductResponse])
async def get_low_stock(
    threshold: Optional[int] = Query(None, ge=0),
    service: ProductService = Depends(get_product_service)
):
    """
    Products with low stock.

    Without a threshold each product is compared to its own minimum level.
    """
    return await service.get_low_stock(threshold)


@router.get("/recent-arrivals", response_model=list[ProductResponse])
async def get_recent_arrivals(
    days: Optional[int] = Query(None, ge=0),
    service: ProductService = Depends(get_product_service)
):
    return await service.get_recent_arrivals(days)


@router.get("/attention", response_model=list[ProductResponse])
async def get_requiring_attention(
    days: Optional[int] = Query(None, ge=0),
    service: ProductService = Depends(get_product_service)
):
    """Low-stock products that have been in stock longer than ``days``."""
    return await service.get_requiring_attention(days)


# ----------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------

@router.get("/stats", response_model=ProductStats)
async def get_stats(service: ProductService = Depends(get_product_service)):
    """Inventory overview with category, brand and supplier breakdowns."""
    return await service.get_stats()


@router.get("/stats/categories", response_model=list[CategoryStats])
async def get_category_stats(service: ProductService = Depends(get_product_service)):
    return await service.get_category_stats()


@router.get("/stats/brands", response_model=list[BrandStats])
async def get_brand_stats(service: ProductService = Depends(get_product_service)):
    return await service.get_brand_stats()


@router.get("/stats/suppliers", response_model=list[SupplierStats])
async def get_supplier_stats(service: ProductService = Depends(get_product_service)):
    return await service.get_supplier_stats()


@router.get("/stats/total-stock-value", response_model=ValueResponse)
async def get_total_stock_value(service: ProductService = Depends(get_product_service)):
    return ValueResponse(value=await service.get_total_stock_value())


@router.get("/stats/total-margin", response_model=ValueResponse)
async def get_total_margin(service: ProductService = Depends(get_product_service)):
    return ValueResponse(value=await service.get_total_margin())


@router.get("/stats/average-margin", response_model=ValueResponse)
async def get_average_margin(service: ProductService = Depends(get_product_service)):
    return ValueResponse(value=await service.get_average_margin_percentage())


@router.get("/categories", response_model=list[str])
async def get_categories(service: ProductService = Depends(get_product_service)):
    return await service.get_categories()


@router.get("/brands", response_model=list[str])
async def get_brands(service: ProductService = Depends(get_product_service)):
    return await service.get_brands()


@router.get("/suppliers", response_model=list[str])
async def get_suppliers(service: ProductService = Depends(get_product_service)):
    return await service.get_suppliers()


@router.get("/batches", response_model=list[str])
async def get_batches(service: ProductService = Depends(get_product_service)):
    return await service.get_import_batches()


@router.get("/count", response_model=CountResponse)
async def count_products(service: ProductService = Depends(get_product_service)):
    return CountResponse(count=await service.count())


# ----------------------------------------------------------------------
# Dropdowns for the product form
# ----------------------------------------------------------------------

@router.get("/dropdowns/product-types", response_model=list[DropdownOption])
async def product_type_dropdown(service: ReferenceService = Depends(get_reference_service)):
    return await service.product_type_options()


@router.get("/dropdowns/brands", response_model=list[BrandOption])
async def brand_dropdown(
    product_type_id: Optional[int] = None,
    service: ReferenceService = Depends(get_reference_service)
):
    return await service.brand_options(product_type_id)


@router.get("/dropdowns/models", response_model=list[ModelOption])
async def model_dropdown(
    product_type_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    service: ReferenceService = Depends(get_reference_service)
):
    return await service.model_options(product_type_id, brand_id)


@router.get("/dropdowns/colors", response_model=list[ColorOption])
async def color_dropdown(service: ReferenceService = Depends(get_reference_service)):
    return await service.color_options()


@router.get("/dropdowns/conditions", response_model=list[ConditionOption])
async def condition_dropdown(service: ReferenceService = Depends(get_reference_service)):
    return await service.condition_options()


# ----------------------------------------------------------------------
# Bulk operations
# ----------------------------------------------------------------------

@router.post("/bulk", response_model=BulkOperationResult)
async def bulk_create(
    payload: ProductBulkCreate,
    service: ProductService = Depends(get_product_service)
):
    """Create several products; each item succeeds or fails on its own."""
    return await service.bulk_create(payload.products)


@router.post("/bulk/stock", response_model=BulkOperationResult)
async def bulk_adjust_stock(
    payload: BulkStockAdjustment,
    service: ProductService = Depends(get_product_service)
):
    return await service.bulk_adjust_stock(payload.product_ids, payload.adjustment)


@router.post("/bulk/prices", response_model=BulkOperationResult)
async def bulk_update_prices(
    payload: BulkPriceChange,
    service: ProductService = Depends(get_product_service)
):
    return await service.bulk_update_prices(payload.product_ids, payload.percentage)


@router.post("/bulk/status", response_model=BulkOperationResult)
async def bulk_change_status(
    payload: BulkStatusChange,
    service: ProductService = Depends(get_product_service)
):
    return await service.bulk_change_status(payload.product_ids, payload.status)


@router.post("/bulk/delete", response_model=BulkOperationResult)
async def bulk_delete(
    payload: BulkDelete,
    service: ProductService = Depends(get_product_service)
):
    return await service.bulk_delete(payload.product_ids)


# ----------------------------------------------------------------------
# Single product
# ----------------------------------------------------------------------

@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    service: ProductService = Depends(get_product_service)
):
    """
    Create a new product.

    Total cost, margin and margin percentage are computed from the prices;
    values sent for them are ignored.
    """
    return await service.create(product_data)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, service: ProductService = Depends(get_product_service)):
    """Get a specific product by ID."""
    return await service.get_or_404(product_id)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    service: ProductService = Depends(get_product_service)
):
    """
    Update a product.

    Only provided fields will be updated. Include ``version`` to fail with
    409 if the product changed since it was read.
    """
    return await service.update(product_id, product_data)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: int, service: ProductService = Depends(get_product_service)):
    """Soft-delete a product."""
    await service.delete(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{product_id}/stock", response_model=ProductResponse)
async def update_stock(
    product_id: int,
    payload: StockUpdate,
    service: ProductService = Depends(get_product_service)
):
    """Set stock to an absolute quantity."""
    return await service.update_stock(product_id, payload.stock)


@router.patch("/{product_id}/adjust-stock", response_model=ProductResponse)
async def adjust_stock(
    product_id: int,
    payload: StockAdjustment,
    service: ProductService = Depends(get_product_service)
):
    """Add (or remove, with a negative value) stock atomically."""
    return await service.adjust_stock(product_id, payload.adjustment)


@router.patch("/{product_id}/price", response_model=ProductResponse)
async def update_price(
    product_id: int,
    payload: PriceUpdate,
    service: ProductService = Depends(get_product_service)
):
    return await service.update_selling_price(product_id, payload.selling_price)


@router.patch("/{product_id}/margin", response_model=ProductResponse)
async def update_margin(
    product_id: int,
    payload: MarginUpdate,
    service: ProductService = Depends(get_product_service)
):
    """Reprice the product to reach the requested margin percentage."""
    return await service.update_margin_percentage(product_id, payload.margin_percentage)


@router.patch("/{product_id}/status", response_model=ProductResponse)
async def change_status(
    product_id: int,
    payload: StatusUpdate,
    service: ProductService = Depends(get_product_service)
):
    return await service.change_status(product_id, payload.status)


@router.patch("/{product_id}/mark-sold", response_model=ProductResponse)
async def mark_sold(product_id: int, service: ProductService = Depends(get_product_service)):
    return await service.mark_as_sold(product_id)


@router.patch("/{product_id}/mark-reserved", response_model=ProductResponse)
async def mark_reserved(product_id: int, service: ProductService = Depends(get_product_service)):
    return await service.mark_as_reserved(product_id)


@router.patch("/{product_id}/mark-available", response_model=ProductResponse)
async def mark_available(product_id: int, service: ProductService = Depends(get_product_service)):
    return await service.mark_as_available(product_id)


@router.patch("/{product_id}/mark-damaged", response_model=ProductResponse)
async def mark_damaged(product_id: int, service: ProductService = Depends(get_product_service)):
    return await service.mark_as_damaged(product_id)
