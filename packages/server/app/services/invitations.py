"""
Collaborator inviter — adds a user's PERSONAL account to the repositories
of every project they belong to.

For each repository the App installation token is tried when the
installation owns the repository; the INSTITUTIONAL OAuth token is the
fallback. Individual failures are recorded, never raised, so the batch
can always be re-run.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import GestTeamError, MissingPersonalLink
from app.core.github import GitHubClient, GitHubProvider
from app.core.tokens import GitHubAppConfigError
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.services import credentials
from app.services.provisioning import COLLABORATOR_PERMISSION
from gestteam_shared.schemas.common import AccountType
from gestteam_shared.schemas.github import (
    COLLABORATOR_ACCEPTED_STATUSES,
    COLLABORATOR_PENDING_STATUS,
    InviteAttempt,
    InviteResult,
    RepoRef,
    parse_repo_url,
)

log = structlog.get_logger()

NO_REPOS_REASON = "No project repositories yet; create the repository first"


async def member_repositories(user_id: uuid.UUID, session: AsyncSession) -> list[RepoRef]:
    """(owner, repo) for every project of the user that has a parseable repo URL."""
    result = await session.execute(
        select(Project.repo_url)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(ProjectMember.user_id == user_id, Project.repo_url.is_not(None))
        .order_by(ProjectMember.joined_at)
    )
    refs = []
    for url in result.scalars().all():
        ref = parse_repo_url(url)
        if ref is not None:
            refs.append(ref)
    return refs


class _Channel:
    """One way of inviting: a client plus the label recorded on attempts."""

    def __init__(self, via: str, client: GitHubClient, owner_login: Optional[str] = None):
        self.via = via
        self.client = client
        self.owner_login = owner_login

    def covers(self, owner: str) -> bool:
        if self.owner_login is None:
            return True
        return self.owner_login.lower() == owner.lower()


async def _app_channel(user_id: uuid.UUID, session: AsyncSession, github: GitHubProvider) -> Optional[_Channel]:
    installation = await credentials.first_installation(user_id, session)
    if installation is None or not installation.account_login:
        return None
    try:
        client = await github.installation_client(installation.installation_id)
    except (GestTeamError, GitHubAppConfigError, OSError, KeyError, ValueError) as exc:
        log.warning(
            "invitations.app_token_unavailable",
            installation_id=installation.installation_id,
            error=str(exc),
        )
        return None
    return _Channel("app", client, installation.account_login)


async def _invite_one(ref: RepoRef, username: str, channels: list[_Channel]) -> tuple[bool, InviteAttempt]:
    messages: list[str] = []
    for channel in channels:
        if not channel.covers(ref.owner):
            continue
        try:
            status = await channel.client.add_collaborator(
                ref.owner, ref.repo, username, COLLABORATOR_PERMISSION
            )
        except GestTeamError as exc:
            status = getattr(exc, "status", None)
            prefix = f"{channel.via} error: {status}" if status else f"{channel.via} error:"
            messages.append(f"{prefix} {exc.message}")
            continue
        if status in COLLABORATOR_ACCEPTED_STATUSES:
            return True, InviteAttempt(
                owner=ref.owner,
                repo=ref.repo,
                username=username,
                via=channel.via,
                message=f"status={status}",
                pending=status == COLLABORATOR_PENDING_STATUS,
            )
        messages.append(f"{channel.via} status={status}")

    return False, InviteAttempt(
        owner=ref.owner,
        repo=ref.repo,
        username=username,
        message=" | ".join(messages) or "no credential can invite on this repository",
    )


async def invite_personal_to_project_repos(
    user_id: uuid.UUID, session: AsyncSession, github: GitHubProvider
) -> InviteResult:
    """Invite the user's PERSONAL login on every project repository they belong to."""
    personal = await credentials.get_account(user_id, AccountType.PERSONAL, session)
    if personal is None or not personal.login:
        raise MissingPersonalLink()

    refs = await member_repositories(user_id, session)
    if not refs:
        return InviteResult(reason=NO_REPOS_REASON)

    channels: list[_Channel] = []
    app_channel = await _app_channel(user_id, session, github)
    if app_channel is not None:
        channels.append(app_channel)
    institutional = await credentials.get_account(user_id, AccountType.INSTITUTIONAL, session)
    if institutional is not None and institutional.access_token:
        channels.append(_Channel("oauth", github.oauth_client(institutional.access_token)))

    result = InviteResult()
    for ref in refs:
        try:
            ok, attempt = await _invite_one(ref, personal.login, channels)
        except Exception as exc:  # one repository never aborts the batch
            log.exception("invitations.attempt_crashed", repo=f"{ref.owner}/{ref.repo}")
            ok, attempt = False, InviteAttempt(
                owner=ref.owner, repo=ref.repo, username=personal.login, message=str(exc)
            )
        (result.invited if ok else result.failed).append(attempt)

    log.info(
        "invitations.completed",
        user_id=str(user_id),
        invited=len(result.invited),
        failed=len(result.failed),
    )
    return result
