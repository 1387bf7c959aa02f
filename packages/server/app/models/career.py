"""Career (degree programme) model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Career(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "careers"

    name: str = Field(nullable=False)
    sigla: Optional[str] = None
    faculty_id: uuid.UUID = Field(foreign_key="faculties.id", nullable=False, index=True)
