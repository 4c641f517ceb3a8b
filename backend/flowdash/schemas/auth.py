from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from flowdash.models.user import RoleEnum


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    remember_me: bool = Field(False, alias="rememberMe")


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    organization_name: str = Field(..., alias="organizationName", min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8)
    language: Optional[str] = "en"

    @field_validator('organization_name', 'name', 'username')
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Field cannot be blank')
        return v

    @field_validator('language', mode='before')
    @classmethod
    def default_language(cls, v):
        if v == '' or v is None:
            return "en"
        return v


class UserResponse(BaseModel):
    id: int
    username: str
    name: str
    role: RoleEnum
    organization_id: int
    language: str
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    message: str
    user: UserResponse
