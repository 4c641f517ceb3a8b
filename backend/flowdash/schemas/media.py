from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class MediaResponse(BaseModel):
    id: int
    filename: str
    filepath: str
    file_type: str
    file_size: int
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LinkedProduct(BaseModel):
    id: int
    name: str
    sku: str
    category: Optional[str] = None
    design: Optional[str] = None
    color: Optional[str] = None

    class Config:
        from_attributes = True


class MediaDetailResponse(MediaResponse):
    uploaded_by_name: Optional[str] = None
    linked_products: List[LinkedProduct] = []


class UploadResult(BaseModel):
    id: int
    filename: str
    filepath: str
    file_type: str = "image/webp"
    file_size: int = 0
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    duplicate: bool = False
    error: Optional[str] = None


class UploadResponse(BaseModel):
    message: str
    results: List[UploadResult]


class BulkDeleteRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    message: str
    deleted_count: int
    deleted_ids: List[int]
    not_found_ids: List[int]
