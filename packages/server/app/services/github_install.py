"""
GitHub App installation flow and metadata backfill.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import authenticate_token
from app.core.config import get_settings
from app.core.errors import GestTeamError, InstallationFetchError, ValidationFailed
from app.core.github import GitHubProvider
from app.core.tokens import GitHubAppConfigError
from app.models.github_installation import GithubInstallation
from app.services import credentials

log = structlog.get_logger()
settings = get_settings()


def install_redirect_url(identity_token: str) -> str:
    """The provider's install page with ``state`` set to the caller's token."""
    base = settings.github_app_install_url
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}state={quote(identity_token, safe='')}"


def _account_fields(info: dict[str, Any]) -> tuple[Optional[str], Optional[int]]:
    account = info.get("account") or {}
    return account.get("login"), account.get("id")


async def fetch_installation(installation_id: int, github: GitHubProvider) -> dict[str, Any]:
    """Installation metadata under App authority; any failure is InstallationFetchError."""
    try:
        return await github.get_installation(installation_id)
    except (GestTeamError, GitHubAppConfigError, OSError, KeyError, ValueError) as exc:
        log.warning(
            "github_install.fetch_failed",
            installation_id=installation_id,
            error=str(exc),
        )
        raise InstallationFetchError() from exc


def parse_installation_id(raw: Optional[str]) -> int:
    try:
        installation_id = int(str(raw))
    except (TypeError, ValueError):
        raise ValidationFailed("Missing installation_id")
    if installation_id <= 0:
        raise ValidationFailed("Missing installation_id")
    return installation_id


async def record_installation(
    installation_id: Optional[str],
    state: Optional[str],
    session: AsyncSession,
    github: GitHubProvider,
) -> GithubInstallation:
    """Verify who installed the App and upsert the installation row.

    ``state`` is the identity token the install redirect carried, or the
    fallback value the caller recovered when the provider dropped it.
    """
    installation_id = parse_installation_id(installation_id)
    identity = await authenticate_token(state, session)
    info = await fetch_installation(installation_id, github)
    login, account_id = _account_fields(info)
    return await credentials.upsert_installation(
        installation_id,
        identity.user_id,
        account_login=login,
        account_id=account_id,
        session=session,
    )


async def backfill_installations(
    user_id, session: AsyncSession, github: GitHubProvider
) -> list[int]:
    """Refresh login/id for every installation of a user; failures are skipped."""
    updated: list[int] = []
    for installation in await credentials.list_installations(user_id, session):
        try:
            info = await fetch_installation(installation.installation_id, github)
        except InstallationFetchError:
            continue
        login, account_id = _account_fields(info)
        installation.account_login = login
        installation.account_id = account_id
        session.add(installation)
        updated.append(installation.installation_id)
    await session.flush()
    log.info("github_install.backfilled", user_id=str(user_id), updated=len(updated))
    return updated
