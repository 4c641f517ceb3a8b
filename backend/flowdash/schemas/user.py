from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from flowdash.models.user import RoleEnum
from flowdash.core.validators import check_username


class UserCreate(BaseModel):
    username: str
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8)
    role: RoleEnum = RoleEnum.FLOOR_STAFF

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        return check_username(v.strip())


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    username: Optional[str] = None
    language: Optional[str] = None
    role: Optional[RoleEnum] = None

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        if v is None:
            return v
        return check_username(v.strip())


class PasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=8)


class UsernameAvailability(BaseModel):
    available: bool
    message: str
