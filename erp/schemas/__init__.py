"""Pydantic schemas for request/response validation."""
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

__all__ = [
    "ProductCreate",
    "ProductUpdate",
    "ProductResponse",
    "ProductListResponse",
    "ProductFilter",
    "StockUpdate",
    "StockAdjustment",
    "PriceUpdate",
    "MarginUpdate",
    "StatusUpdate",
    "ProductBulkCreate",
    "BulkStockAdjustment",
    "BulkPriceChange",
    "BulkStatusChange",
    "BulkDelete",
    "BulkOperationResult",
    "ProductStats",
    "CategoryStats",
    "BrandStats",
    "SupplierStats",
    "ValueResponse",
    "CountResponse",
]
