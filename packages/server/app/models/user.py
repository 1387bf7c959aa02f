"""User model."""

from datetime import datetime, timezone
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)  # institutional address
    first_name: str = Field(nullable=False)
    last_name: str = Field(default="", nullable=False)
    phone: Optional[str] = None
    ci: Optional[int] = Field(default=None, sa_type=sa.BigInteger)
    code: Optional[str] = Field(default=None, unique=True)
    password_hash: Optional[str] = None  # bcrypt; legacy rows may still hold plaintext
    active: bool = Field(default=True, nullable=False)
    role_id: Optional[uuid.UUID] = Field(default=None, foreign_key="roles.id", index=True)
    faculty_id: Optional[uuid.UUID] = Field(default=None, foreign_key="faculties.id")
    career_id: Optional[uuid.UUID] = Field(default=None, foreign_key="careers.id")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={
            "server_default": sa.func.now(),
        },
        sa_type=sa.DateTime(timezone=True),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
