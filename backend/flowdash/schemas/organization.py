from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


class OrganizationUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Organization name cannot be blank')
        return v


class OrganizationResponse(BaseModel):
    id: int
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
