"""
User Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional
from parcel_backend.app.models.enums import UserRole


class UserUpsert(BaseModel):
    """
    Schema for POST /users.
    
    Called on every sign-in; only email is required. Any role sent by the
    client is ignored.
    """
    email: EmailStr = Field(..., description="User email address")
    name: Optional[str] = Field(None, max_length=255)
    photo_url: Optional[str] = Field(None, max_length=1024)
    
    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class UserUpsertResponse(BaseModel):
    message: str
    inserted: bool
    user_id: int


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserRoleResponse(BaseModel):
    email: str
    role: UserRole


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str]
    photo_url: Optional[str]
    role: UserRole
    created_at: datetime
    last_log_in: datetime
    
    model_config = ConfigDict(from_attributes=True)
