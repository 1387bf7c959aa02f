"""
Shared fixtures — SQLite database per test, fake GitHub provider, ASGI client.
"""

from __future__ import annotations

from typing import Any, Optional
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

import app.models  # noqa: F401  (populate metadata)
from app.core import database
from app.core.errors import ProviderAPIError
from app.core.github import get_github
from app.core.tokens import issue_session_token
from app.main import app as fastapi_app
from app.models.career import Career
from app.models.faculty import Faculty
from app.models.github_account import GithubAccount
from app.models.github_installation import GithubInstallation
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.role import Role
from app.models.subject import Subject
from app.models.user import User
from app.services.catalog import role_ids

DOMAIN = "unifranz.edu.bo"


# ---------------------------------------------------------------------------
# Fake GitHub
# ---------------------------------------------------------------------------

class FakeGitHubClient:
    """Stands in for GitHubClient; records calls and returns canned data."""

    def __init__(self, token: Optional[str] = None):
        self.token = token
        self.user: dict[str, Any] = {"id": 101, "login": "octo", "avatar_url": None, "email": None}
        self.emails: Any = []
        self.repos: list[dict[str, Any]] = []
        self.collaborators: dict[str, list[dict[str, Any]]] = {}
        self.collaborator_status = 201
        self.collaborator_errors: dict[str, Exception] = {}
        self.calls: list[tuple] = []

    async def get_user(self):
        self.calls.append(("get_user",))
        return dict(self.user)

    async def get_user_emails(self):
        self.calls.append(("get_user_emails",))
        if isinstance(self.emails, Exception):
            raise self.emails
        return list(self.emails)

    async def list_my_repos(self, **params):
        self.calls.append(("list_my_repos", params))
        return list(self.repos)

    async def create_user_repo(self, name, **options):
        self.calls.append(("create_user_repo", name, options))
        login = self.user["login"]
        return {"name": name, "owner": {"login": login}, "html_url": f"https://github.com/{login}/{name}"}

    async def create_org_repo(self, org, name, **options):
        self.calls.append(("create_org_repo", org, name, options))
        return {"name": name, "owner": {"login": org}, "html_url": f"https://github.com/{org}/{name}"}

    async def add_collaborator(self, owner, repo, username, permission="push"):
        self.calls.append(("add_collaborator", owner, repo, username))
        error = self.collaborator_errors.get(repo)
        if error is not None:
            raise error
        return self.collaborator_status

    async def list_collaborators(self, owner, repo):
        self.calls.append(("list_collaborators", owner, repo))
        return self.collaborators.get(repo, [])

    async def get_app(self):
        return {"id": 1, "slug": "gestteam", "name": "GestTeam"}


class FakeGitHub:
    """Stands in for GitHubProvider."""

    def __init__(self):
        self.oauth: dict[str, FakeGitHubClient] = {}
        self.installation = FakeGitHubClient("ghs_installation")
        self.installations: dict[int, dict[str, Any]] = {}
        self.grant = {"access_token": "gho_linked", "token_type": "bearer", "scope": "repo"}
        self.calls: list[tuple] = []

    def oauth_client(self, access_token):
        return self.oauth.setdefault(access_token, FakeGitHubClient(access_token))

    def app_client(self):
        return FakeGitHubClient("app-jwt")

    async def installation_client(self, installation_id):
        self.calls.append(("installation_client", installation_id))
        return self.installation

    async def get_installation(self, installation_id):
        self.calls.append(("get_installation", installation_id))
        info = self.installations.get(installation_id)
        if info is None:
            raise ProviderAPIError("Not Found", status=404)
        return info

    def authorize_url(self, state):
        return f"https://github.test/login/oauth/authorize?state={state}"

    async def exchange_code(self, code):
        self.calls.append(("exchange_code", code))
        return dict(self.grant)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def not_revoked():
    """No Redis in tests: every session token counts as live."""
    with patch("app.core.auth.is_token_revoked", AsyncMock(return_value=False)) as mock:
        yield mock


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gestteam.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    database.configure_engine(engine)
    role_ids.invalidate()
    yield engine
    role_ids.invalidate()
    await engine.dispose()


@pytest.fixture
async def session(engine):
    async with database.async_session_factory() as s:
        yield s


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
async def client(engine, github):
    fastapi_app.dependency_overrides[get_github] = lambda: github
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Builders (flush only; callers commit when a request must see the rows)
# ---------------------------------------------------------------------------

async def make_role(session, name: str) -> Role:
    role = Role(name=name)
    session.add(role)
    await session.flush()
    return role


async def make_user(session, email: str = f"ana@{DOMAIN}", **fields) -> User:
    fields.setdefault("first_name", email.split("@")[0].capitalize())
    user = User(email=email, **fields)
    session.add(user)
    await session.flush()
    return user


async def make_catalog(session, *, sigla: Optional[str] = "SIS") -> tuple[Faculty, Career, Subject]:
    faculty = Faculty(name="Facultad de Ingeniería")
    session.add(faculty)
    await session.flush()
    career = Career(name="Ingeniería de Sistemas", sigla=sigla, faculty_id=faculty.id)
    session.add(career)
    await session.flush()
    subject = Subject(name="Sistemas de Control", code="SCO", career_id=career.id)
    session.add(subject)
    await session.flush()
    return faculty, career, subject


async def make_project(
    session, owner: User, *, title: str = "Proyecto", repo_url: Optional[str] = None, **fields
) -> Project:
    project = Project(title=title, repo_url=repo_url, **fields)
    session.add(project)
    await session.flush()
    session.add(ProjectMember(project_id=project.id, user_id=owner.id, role="OWNER"))
    await session.flush()
    return project


async def add_member(session, project: Project, user: User, role: str = "MEMBER") -> None:
    session.add(ProjectMember(project_id=project.id, user_id=user.id, role=role))
    await session.flush()


async def link_account(
    session, user: User, account_type: str, login: str, token: str = "gho_token"
) -> GithubAccount:
    account = GithubAccount(
        user_id=user.id,
        account_type=account_type,
        github_id=abs(hash(login)) % 10_000_000,
        login=login,
        access_token=token,
    )
    session.add(account)
    await session.flush()
    return account


async def make_installation(
    session, user: User, installation_id: int = 55, account_login: Optional[str] = "unifranz-org"
) -> GithubInstallation:
    installation = GithubInstallation(
        installation_id=installation_id, user_id=user.id, account_login=account_login
    )
    session.add(installation)
    await session.flush()
    return installation


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_session_token(user.id)}"}
