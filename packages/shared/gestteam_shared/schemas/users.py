"""User management and login schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserCreateRequest(BaseModel):
    """Create an account (admin surface)."""
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    phone: str = Field(min_length=1, max_length=40)
    ci: int = Field(gt=0)
    email: EmailStr
    password: str = Field(min_length=1)
    confirm_password: str
    role_id: UUID
    active: bool = True

    @model_validator(mode="after")
    def _passwords_match(self) -> "UserCreateRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    phone: Optional[str] = None
    ci: Optional[int] = Field(default=None, gt=0)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=1)
    role_id: Optional[UUID] = None
    active: Optional[bool] = None


class LoginRequest(BaseModel):
    email: str
    password: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """Single user; never includes the password hash."""
    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    ci: Optional[int] = None
    code: Optional[str] = None
    role_id: Optional[UUID] = None
    faculty_id: Optional[UUID] = None
    career_id: Optional[UUID] = None
    active: bool = True
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    message: str
    data: UserResponse
    role: Optional[str] = None
    token: str
