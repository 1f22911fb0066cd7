"""
Pydantic schemas for reference data (product types, brands, models, colors,
conditions) and their dropdown projections.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class ReferenceAudit(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    created_by: str
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None


# Product types

class ProductTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    sort_order: int = 0


class ProductTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = None


class ProductTypeResponse(ProductTypeCreate, ReferenceAudit):
    pass


# Brands

class BrandCreate(BaseModel):
    product_type_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = Field(None, max_length=200)
    sort_order: int = 0


class BrandUpdate(BaseModel):
    product_type_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = Field(None, max_length=200)
    sort_order: Optional[int] = None


class BrandResponse(BrandCreate, ReferenceAudit):
    pass


# Models

class ModelCreate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    product_type_id: int
    brand_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    model_reference: Optional[str] = Field(None, max_length=100)
    release_year: Optional[int] = Field(None, ge=1970, le=2100)
    sort_order: int = 0


class ModelUpdate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    product_type_id: Optional[int] = None
    brand_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    model_reference: Optional[str] = Field(None, max_length=100)
    release_year: Optional[int] = Field(None, ge=1970, le=2100)
    sort_order: Optional[int] = None


class ModelResponse(ModelCreate, ReferenceAudit):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


# Colors

class ColorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    hex_code: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = Field(None, max_length=200)
    sort_order: int = 0


class ColorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    hex_code: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = Field(None, max_length=200)
    sort_order: Optional[int] = None


class ColorResponse(ColorCreate, ReferenceAudit):
    pass


# Conditions

class ConditionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    quality_percentage: int = Field(default=100, ge=0, le=100)
    grade: Optional[str] = Field(None, max_length=10)
    sort_order: int = 0


class ConditionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    quality_percentage: Optional[int] = Field(None, ge=0, le=100)
    grade: Optional[str] = Field(None, max_length=10)
    sort_order: Optional[int] = None


class ConditionResponse(ConditionCreate, ReferenceAudit):
    pass


# Dropdown options

class DropdownOption(BaseModel):
    """Lightweight option for cascading form dropdowns."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    sort_order: int
    is_active: bool


class BrandOption(DropdownOption):
    product_type_id: int


class ModelOption(DropdownOption):
    product_type_id: int
    brand_id: int
    brand_name: Optional[str] = None
    release_year: Optional[int] = None


class ColorOption(DropdownOption):
    hex_code: Optional[str] = None


class ConditionOption(DropdownOption):
    quality_percentage: int
    grade: Optional[str] = None
