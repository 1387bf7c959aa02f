"""Faculty model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class Faculty(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "faculties"

    name: str = Field(nullable=False, index=True)
    theme: Optional[dict] = Field(default=None, sa_type=JSONType)
