"""
Pydantic schemas for Product model.

Derived pricing fields (total_cost_price, margin, margin_percentage) only
appear on responses; request schemas ignore them if a client sends them.
"""
from typing import Any, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

from erp.models.product import ProductStatus


class ProductBase(BaseModel):
    """Base product schema."""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    category: str = Field(..., min_length=1, max_length=100)
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    condition: str = Field(..., min_length=1, max_length=50)
    condition_grade: Optional[str] = Field(None, max_length=10)

    # Technical attributes
    storage: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=50)
    memory: Optional[str] = Field(None, max_length=50)
    processor: Optional[str] = Field(None, max_length=100)
    screen_size: Optional[str] = Field(None, max_length=50)

    # Pricing inputs
    purchase_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    transport_cost: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    other_costs: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    selling_price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)

    min_stock_level: Optional[int] = Field(None, ge=0)

    # Provenance
    supplier_name: str = Field(..., min_length=1, max_length=200)
    supplier_city: str = Field(..., min_length=1, max_length=100)
    purchase_date: Optional[datetime] = None
    arrival_date: Optional[datetime] = None
    import_batch: str = Field(..., min_length=1, max_length=100)
    invoice_number: str = Field(..., min_length=1, max_length=100)

    # Additional information
    notes: Optional[str] = None
    warranty_info: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=500)
    images_urls: Optional[list[str]] = None
    documents_urls: Optional[list[str]] = None


class ProductCreate(ProductBase):
    """Schema for creating a product."""
    stock: int = Field(default=0, ge=0)
    status: ProductStatus = ProductStatus.AVAILABLE


class ProductUpdate(BaseModel):
    """
    Partial update; only fields present in the body change.

    Send ``version`` (as read from the product) to reject the write when
    someone else updated the product in the meantime.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    condition: Optional[str] = Field(None, min_length=1, max_length=50)
    condition_grade: Optional[str] = Field(None, max_length=10)
    storage: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=50)
    memory: Optional[str] = Field(None, max_length=50)
    processor: Optional[str] = Field(None, max_length=100)
    screen_size: Optional[str] = Field(None, max_length=50)
    purchase_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    transport_cost: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    other_costs: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    selling_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    min_stock_level: Optional[int] = Field(None, ge=0)
    supplier_name: Optional[str] = Field(None, min_length=1, max_length=200)
    supplier_city: Optional[str] = Field(None, min_length=1, max_length=100)
    purchase_date: Optional[datetime] = None
    arrival_date: Optional[datetime] = None
    import_batch: Optional[str] = Field(None, min_length=1, max_length=100)
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[ProductStatus] = None
    notes: Optional[str] = None
    warranty_info: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=500)
    images_urls: Optional[list[str]] = None
    documents_urls: Optional[list[str]] = None

    version: Optional[int] = Field(None, ge=1)


class ProductResponse(ProductBase):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    stock: int
    min_stock_level: int
    status: ProductStatus
    purchase_date: datetime

    # Derived
    total_cost_price: Decimal
    margin: Decimal
    margin_percentage: Decimal
    total_value: Decimal
    is_low_stock: bool
    days_in_stock: int

    version: int
    created_at: datetime
    created_by: str
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None


class ProductListResponse(BaseModel):
    """Paginated product list response."""
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    pages: int


class ProductFilter(BaseModel):
    """Criteria for the paged product listing."""
    search: Optional[str] = None
    supplier_name: Optional[str] = None
    import_batch: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    condition: Optional[str] = None
    status: Optional[ProductStatus] = None

    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    min_margin_percentage: Optional[Decimal] = None

    min_stock: Optional[int] = None
    max_stock: Optional[int] = None
    low_stock_only: bool = False

    purchase_date_from: Optional[datetime] = None
    purchase_date_to: Optional[datetime] = None
    arrival_date_from: Optional[datetime] = None
    arrival_date_to: Optional[datetime] = None

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)
    sort_by: Optional[str] = None
    sort_descending: bool = False


# Narrow mutations

class StockUpdate(BaseModel):
    stock: int


class StockAdjustment(BaseModel):
    adjustment: int


class PriceUpdate(BaseModel):
    selling_price: Decimal


class MarginUpdate(BaseModel):
    margin_percentage: Decimal


class StatusUpdate(BaseModel):
    status: ProductStatus


# Bulk operations

class ProductBulkCreate(BaseModel):
    """Schema for bulk product creation."""
    # Items are validated one by one so a bad row does not sink the batch
    products: list[dict[str, Any]] = Field(..., min_length=1)


class BulkStockAdjustment(BaseModel):
    product_ids: list[int] = Field(..., min_length=1)
    adjustment: int


class BulkPriceChange(BaseModel):
    """Raise (positive) or cut (negative) selling prices by a percentage."""
    product_ids: list[int] = Field(..., min_length=1)
    percentage: Decimal


class BulkStatusChange(BaseModel):
    product_ids: list[int] = Field(..., min_length=1)
    status: ProductStatus


class BulkDelete(BaseModel):
    product_ids: list[int] = Field(..., min_length=1)


class BulkItemError(BaseModel):
    index: int
    product_id: Optional[int] = None
    message: str


class BulkOperationResult(BaseModel):
    """Per-item outcome of a bulk operation."""
    success_count: int = 0
    failure_count: int = 0
    processed_ids: list[int] = Field(default_factory=list)
    errors: list[BulkItemError] = Field(default_factory=list)
