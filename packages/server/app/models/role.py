"""Role model."""

from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class Role(UUIDMixin, SQLModel, table=True):
    __tablename__ = "roles"

    name: str = Field(unique=True, nullable=False, index=True)  # ADMIN | ESTUDIANTE | DIRECTOR | DOCENTE
