"""
OAuth link flow — associates a GitHub identity with one of a user's two
account slots (INSTITUTIONAL, PERSONAL).

The callback cannot rely on cookies surviving the provider redirect, so
both the user and the slot are recovered from the signed ``state`` token.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import authenticate_token
from app.core.config import get_settings
from app.core.errors import (
    DomainNotAllowed,
    InvalidToken,
    LinkDenied,
    ProviderAPIError,
    Unauthenticated,
)
from app.core.github import GitHubClient, GitHubProvider
from app.core.tokens import decode_state_token, issue_state_token
from app.models.github_account import GithubAccount
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.user import User
from app.services import credentials
from gestteam_shared.schemas.common import AccountType
from gestteam_shared.schemas.github import (
    InstallationRead,
    LinkState,
    OverviewProject,
    OverviewResponse,
    OverviewUser,
    ProviderEmail,
)

log = structlog.get_logger()
settings = get_settings()


def parse_account_type(value: Optional[str]) -> AccountType:
    try:
        return AccountType(str(value or "").upper())
    except ValueError:
        raise LinkDenied("Invalid link type")


# ---------------------------------------------------------------------------
# Email resolution
# ---------------------------------------------------------------------------

def _in_domain(email: str, domain: str) -> bool:
    return email.lower().endswith(f"@{domain.lower()}")


def resolve_link_email(
    emails: Iterable[ProviderEmail], domain: str, require_verified: bool
) -> Optional[str]:
    """Pick the email stored with the link.

    Priority: verified in-domain, then any in-domain (only when verification
    is not required), then primary, then the first one.
    """
    emails = [e for e in emails if e.email]
    if not emails:
        return None
    for e in emails:
        if e.verified and _in_domain(e.email, domain):
            return e.email
    if not require_verified:
        for e in emails:
            if _in_domain(e.email, domain):
                return e.email
    for e in emails:
        if e.primary:
            return e.email
    return emails[0].email


def check_institutional_gate(
    emails: Iterable[ProviderEmail], domain: str, require_verified: bool
) -> None:
    """Raise DomainNotAllowed unless an institutional address is present."""
    matches = [e for e in emails if e.email and _in_domain(e.email, domain)]
    if require_verified:
        if not any(e.verified for e in matches):
            raise DomainNotAllowed(
                f"Your GitHub account must have a VERIFIED @{domain} email. "
                "Add and verify it under Settings > Emails."
            )
    elif not matches:
        raise DomainNotAllowed(
            f"Your GitHub account must have an @{domain} email. "
            "Add it under Settings > Emails."
        )


async def fetch_emails(client: GitHubClient, profile: dict[str, Any]) -> list[ProviderEmail]:
    """Live email list first; the profile's own email if that call fails."""
    try:
        raw = await client.get_user_emails()
    except ProviderAPIError as exc:
        log.warning("github_link.emails_unavailable", status=exc.status)
        raw = [{"email": profile.get("email"), "primary": True, "verified": False}]
    emails = []
    for item in raw or []:
        address = str(item.get("email") or "").strip()
        if address:
            emails.append(
                ProviderEmail(
                    email=address,
                    primary=bool(item.get("primary")),
                    verified=bool(item.get("verified")),
                )
            )
    return emails


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------

def start_link(identity_token: str, account_type: str, github: GitHubProvider) -> str:
    """Return the provider authorize URL for this link attempt."""
    state = LinkState(identity=identity_token, intent=parse_account_type(account_type))
    return github.authorize_url(issue_state_token(state))


async def complete_link(
    code: Optional[str],
    state: Optional[str],
    session: AsyncSession,
    github: GitHubProvider,
) -> tuple[User, GithubAccount]:
    """Handle the OAuth callback and persist the linked account."""
    try:
        link_state = decode_state_token(state)
    except InvalidToken:
        raise LinkDenied("No authenticated user")
    try:
        identity = await authenticate_token(link_state.identity, session)
    except Unauthenticated:
        raise LinkDenied("No authenticated user")
    if not code:
        raise LinkDenied("Missing authorization code")

    user = identity.user
    account_type = link_state.intent

    grant = await github.exchange_code(code)
    client = github.oauth_client(grant["access_token"])
    profile = await client.get_user()
    emails = await fetch_emails(client, profile)

    domain = settings.institution_domain.strip().lower()
    require_verified = settings.require_verified_institutional
    if account_type == AccountType.INSTITUTIONAL:
        check_institutional_gate(emails, domain, require_verified)

    account = await credentials.upsert_account(
        user.id,
        account_type,
        profile,
        email=resolve_link_email(emails, domain, require_verified),
        access_token=grant["access_token"],
        token_type=grant.get("token_type") or "bearer",
        scopes=grant.get("scope") or "",
        session=session,
    )
    return user, account


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------

async def overview(user: User, session: AsyncSession) -> OverviewResponse:
    """Everything the GitHub settings page shows for one user."""
    linked = await credentials.linked_pair(user.id, session)
    installations = await credentials.list_installations(user.id, session)
    result = await session.execute(
        select(Project, ProjectMember.role)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(ProjectMember.user_id == user.id)
        .order_by(Project.created_at.desc())
    )
    return OverviewResponse(
        user=OverviewUser(id=user.id, email=user.email, name=user.full_name),
        linked=linked,
        linked_github=[a for a in (linked.institutional, linked.personal) if a is not None],
        app_installations=[
            InstallationRead(installation_id=i.installation_id, account_login=i.account_login)
            for i in installations
        ],
        projects=[
            OverviewProject(
                project_id=p.id,
                title=p.title,
                subject_code=p.subject_code,
                group_type=p.group_type,
                role=role,
                repo_url=p.repo_url,
            )
            for p, role in result.all()
        ],
    )
