"""Subject model."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Subject(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "subjects"

    name: str = Field(nullable=False)
    code: str = Field(unique=True, nullable=False, index=True)
    career_id: uuid.UUID = Field(foreign_key="careers.id", nullable=False, index=True)
