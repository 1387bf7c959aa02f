"""Linked GitHub account, one per user per account type."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class GithubAccount(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "github_accounts"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "account_type", name="uq_github_accounts_user_type"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    account_type: str = Field(nullable=False)  # INSTITUTIONAL | PERSONAL
    github_id: int = Field(nullable=False, sa_type=sa.BigInteger)
    login: str = Field(nullable=False)
    avatar_url: Optional[str] = None
    email: Optional[str] = None
    access_token: str = Field(nullable=False)
    token_type: str = Field(default="bearer", nullable=False)
    scopes: str = Field(default="", nullable=False)
