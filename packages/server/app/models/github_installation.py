"""GitHub App installation granted by a user (personal account or organization)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class GithubInstallation(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "github_installations"

    installation_id: int = Field(unique=True, nullable=False, index=True, sa_type=sa.BigInteger)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    account_login: Optional[str] = None
    account_id: Optional[int] = Field(default=None, sa_type=sa.BigInteger)
