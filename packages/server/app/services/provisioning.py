"""
Repository provisioning — creates the GitHub repository for a project and
invites its members' PERSONAL accounts.

Where the repository lives depends on who installed the App:

- Organization installs create ``/orgs/{org}/repos`` with the installation
  token.
- User installs cannot create personal repositories with an installation
  token, so the caller's INSTITUTIONAL OAuth token creates ``/user/repos``.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    AppNotInstalled,
    Conflict,
    Forbidden,
    MissingInstitutionalLink,
    NotFound,
    ProviderAPIError,
)
from app.core.github import GitHubClient, GitHubProvider
from app.core.tokens import GitHubAppConfigError
from app.models.github_account import GithubAccount
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.user import User
from app.services import credentials
from gestteam_shared.schemas.common import AccountType, InstallationAccountType, MemberRole
from gestteam_shared.schemas.github import (
    COLLABORATOR_ACCEPTED_STATUSES,
    CollaboratorOutcome,
    ProvisionedRepo,
    ProvisionResponse,
    slugify_repo_name,
)

log = structlog.get_logger()

COLLABORATOR_PERMISSION = "push"


# ---------------------------------------------------------------------------
# Creation strategies
# ---------------------------------------------------------------------------

class RepositoryCreationStrategy(ABC):
    """Creates one repository under a fixed owner."""

    via: str

    def __init__(self, client: GitHubClient, owner: str):
        self.client = client
        self.owner = owner

    @abstractmethod
    async def create(self, name: str) -> dict[str, Any]:
        ...


class OrganizationRepositoryStrategy(RepositoryCreationStrategy):
    via = "installation"

    async def create(self, name: str) -> dict[str, Any]:
        return await self.client.create_org_repo(
            self.owner,
            name,
            private=True,
            auto_init=True,
            has_issues=True,
            has_projects=True,
            has_wiki=False,
        )


class UserRepositoryStrategy(RepositoryCreationStrategy):
    via = "oauth"

    async def create(self, name: str) -> dict[str, Any]:
        return await self.client.create_user_repo(name, private=True, auto_init=True)


def select_strategy(
    account_type: Optional[str],
    *,
    installation_login: str,
    installation_client: GitHubClient,
    institutional: Optional[GithubAccount],
    github: GitHubProvider,
) -> RepositoryCreationStrategy:
    """Pick the creation strategy for the installing account's type."""
    if account_type == InstallationAccountType.ORGANIZATION.value:
        return OrganizationRepositoryStrategy(installation_client, installation_login)
    if institutional is None or not institutional.access_token:
        raise MissingInstitutionalLink(
            "Link your INSTITUTIONAL GitHub account first to create repositories"
        )
    return UserRepositoryStrategy(
        github.oauth_client(institutional.access_token),
        institutional.login or installation_login,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def repository_name(project: Project) -> str:
    base = f"{project.subject_code}-{project.title}" if project.subject_code else project.title
    return slugify_repo_name(base or "") or f"proyecto-{project.id}"


async def _require_owner(project_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    result = await session.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
            ProjectMember.role == MemberRole.OWNER.value,
        )
    )
    if result.scalar_one_or_none() is None:
        raise Forbidden("Only the project OWNER can create the repository")
    return project


async def personal_logins(project_id: uuid.UUID, session: AsyncSession) -> list[str]:
    """PERSONAL logins of every member; members without one are skipped."""
    result = await session.execute(
        select(GithubAccount.login)
        .join(ProjectMember, ProjectMember.user_id == GithubAccount.user_id)
        .where(
            ProjectMember.project_id == project_id,
            GithubAccount.account_type == AccountType.PERSONAL.value,
        )
        .order_by(ProjectMember.joined_at)
    )
    return [login for login in result.scalars().all() if login]


async def invite_collaborators(
    client: GitHubClient, owner: str, repo: str, usernames: list[str]
) -> tuple[list[CollaboratorOutcome], list[CollaboratorOutcome]]:
    invited: list[CollaboratorOutcome] = []
    failed: list[CollaboratorOutcome] = []
    for username in usernames:
        try:
            status = await client.add_collaborator(owner, repo, username, COLLABORATOR_PERMISSION)
        except ProviderAPIError as exc:
            failed.append(CollaboratorOutcome(username=username, status=exc.status, error=exc.message))
            continue
        if status in COLLABORATOR_ACCEPTED_STATUSES:
            invited.append(CollaboratorOutcome(username=username, status=status))
        else:
            failed.append(CollaboratorOutcome(username=username, status=status))
    return invited, failed


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------

async def provision_repository(
    project_id: uuid.UUID,
    user: User,
    session: AsyncSession,
    github: GitHubProvider,
) -> ProvisionResponse:
    """Create the project's repository and invite its members."""
    project = await _require_owner(project_id, user.id, session)
    if project.repo_url:
        raise Conflict("Project already has a repository", detail={"repo_url": project.repo_url})
    installation = await credentials.first_installation(user.id, session)
    if installation is None:
        raise AppNotInstalled()

    try:
        info = await github.get_installation(installation.installation_id)
        app_client = await github.installation_client(installation.installation_id)
    except GitHubAppConfigError as exc:
        raise ProviderAPIError(str(exc)) from exc

    account = info.get("account") or {}
    installation_login = account.get("login") or installation.account_login or ""
    strategy = select_strategy(
        account.get("type"),
        installation_login=installation_login,
        installation_client=app_client,
        institutional=await credentials.get_account(user.id, AccountType.INSTITUTIONAL, session),
        github=github,
    )

    name = repository_name(project)
    created = await strategy.create(name)
    owner = (created.get("owner") or {}).get("login") or strategy.owner
    name = created.get("name") or name
    url = created.get("html_url") or f"https://github.com/{owner}/{name}"

    project.repo_url = url
    session.add(project)
    await session.flush()
    log.info(
        "project.repo_created",
        project_id=str(project.id),
        repo=f"{owner}/{name}",
        via=strategy.via,
    )

    invited, failed = await invite_collaborators(
        app_client, owner, name, await personal_logins(project.id, session)
    )
    if failed:
        log.warning(
            "project.repo_invites_failed",
            project_id=str(project.id),
            failed=[f.username for f in failed],
        )

    return ProvisionResponse(
        ok=True,
        repo=ProvisionedRepo(owner=owner, name=name, url=url, full_name=f"{owner}/{name}"),
        invited=invited,
        failed=failed,
    )
