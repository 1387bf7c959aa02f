"""Project model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    title: str = Field(nullable=False)
    subject_code: Optional[str] = None
    group_type: str = Field(default="GROUP", nullable=False)  # GROUP | INDIVIDUAL
    repo_url: Optional[str] = Field(default=None, index=True)  # set once by provisioning/import
