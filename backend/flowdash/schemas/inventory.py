from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class LogEntryUpdate(BaseModel):
    produced: int = Field(..., ge=1)
    quality: str = Field(..., min_length=1, max_length=255)
    packaging_type: str = Field(..., min_length=1, max_length=255)

    @field_validator('quality', 'packaging_type')
    @classmethod
    def strip_value(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Field cannot be blank')
        return v


class LogEntryCreate(LogEntryUpdate):
    product_id: int = Field(..., gt=0)


class LogResponse(BaseModel):
    id: int
    product_id: int
    user_id: int
    product_name: str
    color: Optional[str] = None
    design: Optional[str] = None
    image_url: Optional[str] = None
    username: str  # display name of the user who logged the entry
    produced: int
    quality: str
    packaging_type: str
    created_at: Optional[datetime] = None


class StockEntry(BaseModel):
    quality: str
    packaging_type: str
    quantity: int
    last_updated_at: Optional[datetime] = None


class ProductStock(BaseModel):
    product_id: int
    product_name: str
    sku: str
    category: Optional[str] = None
    design: Optional[str] = None
    color: Optional[str] = None
    image_url: Optional[str] = None
    stock_entries: List[StockEntry]
    total_quantity: int


class DashboardSummary(BaseModel):
    today: int
    week: int
    month: int
    todaysLogs: int


class WeeklyProduction(BaseModel):
    labels: List[str]
    data: List[int]
