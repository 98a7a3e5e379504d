"""User-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from productbazar.models.user import UserRole


class UserResponse(BaseModel):
    """Schema for the signed-in user's own profile."""

    id: int
    username: str
    email: str | None
    phone: str | None
    first_name: str | None
    last_name: str | None
    full_name: str
    about: str | None
    bio: str | None
    headline: str | None
    country: str | None
    city: str | None
    profile_picture_url: str | None
    role: UserRole
    secondary_roles: list[str] = []
    capabilities: dict[str, bool]
    is_email_verified: bool
    is_phone_verified: bool
    is_profile_completed: bool
    last_login: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Schema for updating the current user's profile."""

    username: str | None = Field(None, min_length=3, max_length=30)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=20)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    about: str | None = Field(None, max_length=2000)
    bio: str | None = Field(None, max_length=500)
    headline: str | None = Field(None, max_length=255)
    country: str | None = Field(None, max_length=100)
    city: str | None = Field(None, max_length=100)
    profile_picture_url: str | None = Field(None, max_length=1000)


class RoleDetailsResponse(BaseModel):
    id: int
    user_id: int
    role: UserRole
    details: dict[str, Any]
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoleDetailsUpdate(BaseModel):
    details: dict[str, Any]
    role: UserRole | None = None


class SecondaryRoleCreate(BaseModel):
    role: UserRole
