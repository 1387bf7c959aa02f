"""
Repository listings from the INSTITUTIONAL account, and importing them
as projects.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import MissingInstitutionalLink, ProviderAPIError
from app.core.github import GitHubClient, GitHubProvider
from app.models.github_account import GithubAccount
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.services import credentials
from gestteam_shared.schemas.common import AccountType, GroupType, MemberRole
from gestteam_shared.schemas.github import CollaboratorSummary, RepoDetail, RepoSummary

log = structlog.get_logger()


async def _institutional_client(
    user_id: uuid.UUID, session: AsyncSession, github: GitHubProvider
) -> tuple[GithubAccount, GitHubClient]:
    account = await credentials.get_account(user_id, AccountType.INSTITUTIONAL, session)
    if account is None or not account.access_token:
        raise MissingInstitutionalLink()
    return account, github.oauth_client(account.access_token)


def _owned_by(repo: dict[str, Any], login: str) -> bool:
    owner = (repo.get("owner") or {}).get("login") or ""
    return owner.lower() == (login or "").lower()


def _summary(repo: dict[str, Any]) -> RepoSummary:
    return RepoSummary(
        full_name=repo["full_name"], private=bool(repo.get("private")), url=repo["html_url"]
    )


async def list_repos(user_id: uuid.UUID, session: AsyncSession, github: GitHubProvider) -> list[RepoSummary]:
    _, client = await _institutional_client(user_id, session, github)
    return [_summary(r) for r in await client.list_my_repos()]


async def list_repos_full(
    user_id: uuid.UUID, session: AsyncSession, github: GitHubProvider
) -> list[RepoDetail]:
    """Owned repositories with collaborators; listing collaborators is best effort."""
    account, client = await _institutional_client(user_id, session, github)
    details = []
    for repo in await client.list_my_repos(affiliation="owner"):
        if not _owned_by(repo, account.login):
            continue
        owner = repo["owner"]
        try:
            collaborators = [
                CollaboratorSummary(login=c["login"], site_admin=bool(c.get("site_admin")))
                for c in await client.list_collaborators(owner["login"], repo["name"])
            ]
        except ProviderAPIError:
            collaborators = []
        is_org = owner.get("type") == "Organization"
        details.append(
            RepoDetail(
                full_name=repo["full_name"],
                name=repo["name"],
                owner=owner["login"],
                private=bool(repo.get("private")),
                url=repo["html_url"],
                is_org=is_org,
                collaborators=collaborators,
                group_type=GroupType.GROUP if is_org or len(collaborators) > 1 else GroupType.INDIVIDUAL,
            )
        )
    return details


async def _project_by_url(url: str, session: AsyncSession) -> Project | None:
    result = await session.execute(select(Project).where(Project.repo_url == url).limit(1))
    return result.scalar_one_or_none()


async def _ensure_owner(project_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> None:
    membership = await session.get(ProjectMember, (project_id, user_id))
    if membership is None:
        session.add(ProjectMember(project_id=project_id, user_id=user_id, role=MemberRole.OWNER.value))
    elif membership.role != MemberRole.OWNER.value:
        membership.role = MemberRole.OWNER.value
        session.add(membership)


async def import_repos(
    user_id: uuid.UUID, session: AsyncSession, github: GitHubProvider
) -> dict[str, list[dict[str, Any]]]:
    """Create a project (with the caller as OWNER) for each owned repository not yet known."""
    account, client = await _institutional_client(user_id, session, github)
    created: list[dict[str, Any]] = []
    skipped: list[dict[str, Any]] = []
    for repo in await client.list_my_repos(affiliation="owner"):
        if not _owned_by(repo, account.login):
            skipped.append({"full_name": repo["full_name"], "reason": "no-owner"})
            continue
        if await _project_by_url(repo["html_url"], session) is not None:
            skipped.append({"full_name": repo["full_name"], "reason": "exists"})
            continue
        project = Project(title=repo["name"], group_type=GroupType.GROUP.value, repo_url=repo["html_url"])
        session.add(project)
        await session.flush()
        session.add(ProjectMember(project_id=project.id, user_id=user_id, role=MemberRole.OWNER.value))
        await session.flush()
        created.append(
            {
                "id": str(project.id),
                "full_name": repo["full_name"],
                "private": bool(repo.get("private")),
                "url": repo["html_url"],
            }
        )
    log.info("github_repos.imported", user_id=str(user_id), created=len(created), skipped=len(skipped))
    return {"created": created, "skipped": skipped}


async def sync_repos(
    user_id: uuid.UUID, session: AsyncSession, github: GitHubProvider
) -> list[dict[str, Any]]:
    """Upsert a project per owned repository and make the caller its OWNER."""
    account, client = await _institutional_client(user_id, session, github)
    items: list[dict[str, Any]] = []
    for repo in await client.list_my_repos(affiliation="owner", sort="updated"):
        if not _owned_by(repo, account.login):
            continue
        url = repo["html_url"]
        project = await _project_by_url(url, session)
        if project is None:
            project = Project(title=repo["name"], group_type=GroupType.GROUP.value, repo_url=url)
            session.add(project)
            await session.flush()
        elif project.title != repo["name"]:
            project.title = repo["name"]
            session.add(project)
        await _ensure_owner(project.id, user_id, session)
        await session.flush()
        items.append(
            {
                "project_id": str(project.id),
                "repo_url": url,
                "private": bool(repo.get("private")),
                "full_name": repo["full_name"],
            }
        )
    log.info("github_repos.synced", user_id=str(user_id), count=len(items))
    return items
