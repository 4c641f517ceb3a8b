from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


def _strip_optional(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def _clean_names(v):
    if v is None:
        return None
    cleaned = []
    for item in v:
        item = str(item).strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = None
    category: Optional[str] = None
    design: Optional[str] = None
    image_url: Optional[str] = None
    media_id: Optional[int] = None
    available_qualities: Optional[List[str]] = None
    available_packaging_types: Optional[List[str]] = None

    @field_validator('name', 'sku')
    @classmethod
    def strip_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Field cannot be blank')
        return v

    @field_validator('color', 'category', 'design', 'image_url', mode='before')
    @classmethod
    def strip_optional(cls, v):
        return _strip_optional(v)

    @field_validator('available_qualities', 'available_packaging_types')
    @classmethod
    def clean_names(cls, v):
        return _clean_names(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = None
    category: Optional[str] = None
    design: Optional[str] = None
    image_url: Optional[str] = None
    media_id: Optional[int] = None
    available_qualities: Optional[List[str]] = None
    available_packaging_types: Optional[List[str]] = None

    @field_validator('name', 'sku')
    @classmethod
    def strip_required(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Field cannot be blank')
        return v

    @field_validator('color', 'category', 'design', 'image_url', mode='before')
    @classmethod
    def strip_optional(cls, v):
        return _strip_optional(v)

    @field_validator('available_qualities', 'available_packaging_types')
    @classmethod
    def clean_names(cls, v):
        return _clean_names(v)


class ProductResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    sku: str
    color: Optional[str] = None
    category: Optional[str] = None
    design: Optional[str] = None
    image_url: Optional[str] = None
    media_id: Optional[int] = None
    is_archived: bool = False
    available_qualities: List[str] = []
    available_packaging_types: List[str] = []
    quantity_on_hand: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductSummary(BaseModel):
    sku: str
    name: str


class ImportErrorRow(BaseModel):
    row: int
    errors: List[str]


class ProductImportResult(BaseModel):
    totalRows: int
    importedCount: int
    skippedCount: int
    errorCount: int
    importedProducts: List[ProductSummary]
    skippedProducts: List[ProductSummary]
    errorRows: List[ImportErrorRow]
