"""Initial schema: academic catalog, users, projects, GitHub credentials.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16 12:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Academic catalog
    # -----------------------------------------------------------------------

    op.create_table(
        "roles",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
    )

    op.create_table(
        "faculties",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("theme", postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_faculties_name", "faculties", ["name"])

    op.create_table(
        "careers",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("sigla", sa.Text(), nullable=True),
        sa.Column("faculty_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("faculties.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_careers_faculty_id", "careers", ["faculty_id"])

    op.create_table(
        "subjects",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("code", sa.Text(), nullable=False, unique=True),
        sa.Column("career_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("careers.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_subjects_career_id", "subjects", ["career_id"])

    # -----------------------------------------------------------------------
    # 2. Users
    # -----------------------------------------------------------------------

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("ci", sa.BigInteger(), nullable=True),
        sa.Column("code", sa.Text(), nullable=True, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("roles.id"), nullable=True),
        sa.Column("faculty_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("faculties.id"), nullable=True),
        sa.Column("career_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("careers.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_role_id", "users", ["role_id"])

    # -----------------------------------------------------------------------
    # 3. Projects
    # -----------------------------------------------------------------------

    op.create_table(
        "projects",
        _uuid_pk(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("subject_code", sa.Text(), nullable=True),
        sa.Column("group_type", sa.Text(), nullable=False, server_default="GROUP"),
        sa.Column("repo_url", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("group_type IN ('GROUP', 'INDIVIDUAL')", name="ck_projects_group_type"),
    )
    op.create_index("ix_projects_repo_url", "projects", ["repo_url"])

    op.create_table(
        "project_members",
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="MEMBER"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("role IN ('OWNER', 'MEMBER')", name="ck_project_members_role"),
    )

    # -----------------------------------------------------------------------
    # 4. GitHub credentials
    # -----------------------------------------------------------------------

    op.create_table(
        "github_accounts",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("account_type", sa.Text(), nullable=False),
        sa.Column("github_id", sa.BigInteger(), nullable=False),
        sa.Column("login", sa.Text(), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("token_type", sa.Text(), nullable=False, server_default="bearer"),
        sa.Column("scopes", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "account_type", name="uq_github_accounts_user_type"),
        sa.CheckConstraint(
            "account_type IN ('INSTITUTIONAL', 'PERSONAL')", name="ck_github_accounts_type"
        ),
    )
    op.create_index("ix_github_accounts_user_id", "github_accounts", ["user_id"])

    op.create_table(
        "github_installations",
        _uuid_pk(),
        sa.Column("installation_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("account_login", sa.Text(), nullable=True),
        sa.Column("account_id", sa.BigInteger(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_github_installations_user_id", "github_installations", ["user_id"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in (
        "github_installations",
        "github_accounts",
        "project_members",
        "projects",
        "users",
        "subjects",
        "careers",
        "faculties",
        "roles",
    ):
        op.drop_table(table)
