"""
Pydantic schemas for inventory reports.
"""
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class CategoryStats(BaseModel):
    category: str
    product_count: int
    total_value: Decimal  # sum of stock * selling_price
    average_price: Decimal
    low_stock_count: int = 0


class BrandStats(BaseModel):
    brand: str
    product_count: int
    total_value: Decimal
    average_margin_percentage: Decimal
    low_stock_count: int = 0


class SupplierStats(BaseModel):
    supplier_name: str
    supplier_city: Optional[str] = None
    product_count: int
    total_purchase_value: Decimal
    total_selling_value: Decimal
    total_margin: Decimal  # sum of margin * stock


class ProductStats(BaseModel):
    """Inventory overview over all non-deleted products."""
    total_products: int
    available_products: int
    low_stock_products: int
    total_stock_value: Decimal
    total_margin: Decimal
    potential_margin: Decimal
    # Unweighted mean of per-product margin percentages
    average_margin_percentage: Decimal
    category_stats: list[CategoryStats] = Field(default_factory=list)
    brand_stats: list[BrandStats] = Field(default_factory=list)
    supplier_stats: list[SupplierStats] = Field(default_factory=list)


class ValueResponse(BaseModel):
    """Single aggregate value."""
    value: Decimal


class CountResponse(BaseModel):
    count: int
