"""
Credential store — linked GitHub accounts and App installations.

Pure data access shared by the link, installation, provisioning and
invitation flows. Writers flush; the request session commits.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.github_account import GithubAccount
from app.models.github_installation import GithubInstallation
from gestteam_shared.schemas.common import AccountType
from gestteam_shared.schemas.github import LinkedAccountRead, LinkedPair

log = structlog.get_logger()


async def get_account(
    user_id: uuid.UUID, account_type: AccountType, session: AsyncSession
) -> Optional[GithubAccount]:
    result = await session.execute(
        select(GithubAccount).where(
            GithubAccount.user_id == user_id,
            GithubAccount.account_type == AccountType(account_type).value,
        )
    )
    return result.scalar_one_or_none()


async def list_accounts(user_id: uuid.UUID, session: AsyncSession) -> list[GithubAccount]:
    result = await session.execute(
        select(GithubAccount)
        .where(GithubAccount.user_id == user_id)
        .order_by(GithubAccount.account_type)
    )
    return list(result.scalars().all())


async def upsert_account(
    user_id: uuid.UUID,
    account_type: AccountType,
    profile: dict[str, Any],
    *,
    email: Optional[str],
    access_token: str,
    token_type: str = "bearer",
    scopes: str = "",
    session: AsyncSession,
) -> GithubAccount:
    """Insert or overwrite the (user, account_type) slot.

    Re-linking replaces every provider field; there is never more than one
    row per slot.
    """
    account = await get_account(user_id, account_type, session)
    created = account is None
    if account is None:
        account = GithubAccount(user_id=user_id, account_type=AccountType(account_type).value)

    account.github_id = int(profile["id"])
    account.login = profile.get("login") or ""
    account.avatar_url = profile.get("avatar_url")
    account.email = email
    account.access_token = access_token
    account.token_type = token_type or "bearer"
    account.scopes = scopes or ""
    account.updated_at = datetime.now(timezone.utc)

    session.add(account)
    await session.flush()
    log.info(
        "github_account.linked",
        user_id=str(user_id),
        account_type=account.account_type,
        login=account.login,
        created=created,
    )
    return account


async def list_installations(
    user_id: uuid.UUID, session: AsyncSession
) -> list[GithubInstallation]:
    """Installations of a user, oldest first."""
    result = await session.execute(
        select(GithubInstallation)
        .where(GithubInstallation.user_id == user_id)
        .order_by(GithubInstallation.created_at, GithubInstallation.installation_id)
    )
    return list(result.scalars().all())


async def first_installation(
    user_id: uuid.UUID, session: AsyncSession
) -> Optional[GithubInstallation]:
    installations = await list_installations(user_id, session)
    return installations[0] if installations else None


async def upsert_installation(
    installation_id: int,
    user_id: uuid.UUID,
    *,
    account_login: Optional[str],
    account_id: Optional[int],
    session: AsyncSession,
) -> GithubInstallation:
    """Insert or refresh an installation keyed by its provider id."""
    result = await session.execute(
        select(GithubInstallation).where(GithubInstallation.installation_id == installation_id)
    )
    installation = result.scalar_one_or_none()
    if installation is None:
        installation = GithubInstallation(installation_id=installation_id, user_id=user_id)
    else:
        installation.user_id = user_id
        installation.updated_at = datetime.now(timezone.utc)

    installation.account_login = account_login
    installation.account_id = account_id
    session.add(installation)
    await session.flush()
    log.info(
        "github_installation.saved",
        installation_id=installation_id,
        user_id=str(user_id),
        account_login=account_login,
    )
    return installation


def _linked_read(account: Optional[GithubAccount]) -> Optional[LinkedAccountRead]:
    if account is None:
        return None
    return LinkedAccountRead(
        account_type=account.account_type, login=account.login, email=account.email
    )


async def linked_pair(user_id: uuid.UUID, session: AsyncSession) -> LinkedPair:
    """Both slots of a user, either of which may be empty."""
    accounts = {a.account_type: a for a in await list_accounts(user_id, session)}
    return LinkedPair(
        institutional=_linked_read(accounts.get(AccountType.INSTITUTIONAL.value)),
        personal=_linked_read(accounts.get(AccountType.PERSONAL.value)),
    )
