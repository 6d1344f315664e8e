"""Pydantic schemas for user data validation."""

from datetime import date
from typing import Dict, Optional

from pydantic import BaseModel, Field

from components.user.models import UserRole, UserStatus


class UserBase(BaseModel):
    """Base user schema."""
    login: str = Field(..., min_length=3, max_length=50)
    name: str = ""
    role: UserRole = UserRole.WORKER
    status: UserStatus = UserStatus.ACTIVE
    permissions: Dict[str, bool] = Field(default_factory=dict)


class UserCreate(UserBase):
    """Schema for user creation."""
    password: str = Field(..., min_length=6)


class UserUpdate(BaseModel):
    """Schema for user update, every field optional."""
    login: Optional[str] = Field(None, min_length=3, max_length=50)
    password: Optional[str] = Field(None, min_length=6)
    name: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    permissions: Optional[Dict[str, bool]] = None


class User(UserBase):
    """Schema for user response."""
    id: int
    registration_date: date

    class Config:
        from_attributes = True


class UserWithToken(User):
    """User returned together with a fresh access token."""
    access_token: str
    token_type: str = "bearer"
