from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from flowdash.models.product import AttributeTypeEnum


class AttributeCreate(BaseModel):
    type: AttributeTypeEnum
    value: str = Field(..., min_length=1, max_length=255)

    @field_validator('value')
    @classmethod
    def strip_value(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Value cannot be blank')
        return v


class AttributeUpdate(BaseModel):
    value: str = Field(..., min_length=1, max_length=255)

    @field_validator('value')
    @classmethod
    def strip_value(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Value cannot be blank')
        return v


class AttributeResponse(BaseModel):
    id: int
    type: AttributeTypeEnum
    value: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
