"""
GitHub integration endpoints.

Redirect-terminated flows (OAuth link, App installation) never answer with
JSON: every outcome becomes a redirect to the front end carrying
``linked`` / ``linked_error`` or ``app_install`` / ``app_install_error``.
Everything else answers JSON.
"""

from __future__ import annotations

import uuid
from typing import Optional
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionIdentity, get_current_user, get_session_identity
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import (
    DomainNotAllowed,
    GestTeamError,
    InstallationFetchError,
    LinkDenied,
    Unauthenticated,
    ValidationFailed,
)
from app.core.github import GitHubProvider, get_github
from app.core.tokens import GitHubAppConfigError
from app.models.user import User
from app.services import github_install, github_link, github_repos, invitations, provisioning
from app.tasks.invitations import invite_after_link
from gestteam_shared.schemas.github import BackfillResponse, OverviewResponse, ProvisionResponse

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

INSTALL_COOKIE = "gt_install_t"


def _front(**params: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.frontend_url}/?{urlencode(params)}", status_code=302)


def _install_cookie_secure(request: Request) -> bool:
    # Browsers drop Secure cookies set over plain http
    if settings.install_cookie_secure is not None:
        return settings.install_cookie_secure
    return request.url.scheme == "https"


# ---------------------------------------------------------------------------
# OAuth link
# ---------------------------------------------------------------------------

@router.get("/oauth/start")
async def oauth_start(
    type: Optional[str] = Query(None),
    identity: SessionIdentity = Depends(get_session_identity),
    github: GitHubProvider = Depends(get_github),
):
    """Send the browser to GitHub to link the INSTITUTIONAL or PERSONAL slot."""
    url = github_link.start_link(identity.token, type, github)
    return RedirectResponse(url, status_code=302)


@router.get("/oauth/callback")
async def oauth_callback(
    background_tasks: BackgroundTasks,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    try:
        user, account = await github_link.complete_link(code, state, session, github)
    except (LinkDenied, DomainNotAllowed) as exc:
        log.info("github_link.denied", reason=exc.message)
        return _front(linked_error=exc.message)
    except GestTeamError as exc:
        log.warning("github_link.failed", error=exc.message)
        return _front(linked_error="GitHub OAuth error")
    except Exception:
        log.exception("github_link.crashed")
        return _front(linked_error="GitHub OAuth error")

    # the inviter opens its own session and must see the new link
    await session.commit()
    background_tasks.add_task(invite_after_link, user.id, github)
    return _front(linked="ok")


# ---------------------------------------------------------------------------
# App installation
# ---------------------------------------------------------------------------

@router.get("/app/install")
async def app_install(request: Request, t: Optional[str] = Query(None)):
    """Redirect to the App's install page, keeping ``t`` as a cookie fallback."""
    if not settings.github_app_install_url:
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "GT_GITHUB_APP_INSTALL_URL is not configured"},
        )
    token = t or ""
    response = RedirectResponse(github_install.install_redirect_url(token), status_code=302)
    response.set_cookie(
        key=INSTALL_COOKIE,
        value=token,
        httponly=True,
        secure=_install_cookie_secure(request),
        samesite="lax",
        path="/github/app",
        max_age=settings.state_expire_minutes * 60,
    )
    return response


@router.get("/app/installed")
async def app_installed(
    request: Request,
    installation_id: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    """GitHub's post-install callback; ``state`` may be missing on some install paths."""
    state = state or request.cookies.get(INSTALL_COOKIE)
    try:
        await github_install.record_installation(installation_id, state, session, github)
    except (ValidationFailed, Unauthenticated, InstallationFetchError) as exc:
        log.info("github_install.rejected", reason=exc.error_code)
        return _front(app_install_error=exc.message)
    except Exception:
        log.exception("github_install.crashed")
        return _front(app_install_error="Unexpected error")

    response = _front(app_install="ok")
    response.delete_cookie(INSTALL_COOKIE, path="/github/app")
    return response


@router.post("/app/backfill", response_model=BackfillResponse)
async def app_backfill(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    updated = await github_install.backfill_installations(user.id, session, github)
    return BackfillResponse(ok=True, updated=updated)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

@router.get("/me/overview", response_model=OverviewResponse)
async def me_overview(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await github_link.overview(user, session)


@router.get("/me/repos")
async def me_repos(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    return {"repos": await github_repos.list_repos(user.id, session, github)}


@router.get("/me/repos/full")
async def me_repos_full(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    return {"repos": await github_repos.list_repos_full(user.id, session, github)}


@router.post("/import/repos")
async def import_repos(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    """Create a project for each owned INSTITUTIONAL repository not yet imported."""
    result = await github_repos.import_repos(user.id, session, github)
    return {"ok": True, **result}


@router.post("/me/sync-repos")
async def sync_repos(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    items = await github_repos.sync_repos(user.id, session, github)
    return {"ok": True, "count": len(items), "items": items}


# ---------------------------------------------------------------------------
# Provisioning and invitations
# ---------------------------------------------------------------------------

@router.post("/project/{projectId}/repo", response_model=ProvisionResponse)
async def create_project_repo(
    projectId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    """Create the project's repository (OWNER only) and invite its members."""
    return await provisioning.provision_repository(projectId, user, session, github)


async def _invite_batch(user: User, session: AsyncSession, github: GitHubProvider) -> dict:
    try:
        result = await invitations.invite_personal_to_project_repos(user.id, session, github)
    except GestTeamError as exc:
        return {"ok": False, "invited": [], "failed": [], "error": exc.message}
    return {"ok": True, **result.model_dump(exclude_none=True)}


@router.post("/me/invite-personal-on-all")
async def invite_personal_on_all(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    """Invite the PERSONAL account on every project repository; always 200."""
    return await _invite_batch(user, session, github)


@router.post("/me/retry-invites")
async def retry_invites(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubProvider = Depends(get_github),
):
    return await _invite_batch(user, session, github)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

@router.get("/healthz")
async def healthz():
    return {"ok": True}


@router.get("/debug/app")
async def debug_app(github: GitHubProvider = Depends(get_github)):
    """Check that the App id and private key authenticate."""
    try:
        data = await github.app_client().get_app()
    except (GestTeamError, GitHubAppConfigError, OSError) as exc:
        return JSONResponse(
            status_code=500, content={"ok": False, "where": "GET /app", "message": str(exc)}
        )
    return {"ok": True, "id": data.get("id"), "slug": data.get("slug"), "name": data.get("name")}


@router.get("/debug/install/{installationId}")
async def debug_install(installationId: int, github: GitHubProvider = Depends(get_github)):
    try:
        data = await github.get_installation(installationId)
    except (GestTeamError, GitHubAppConfigError, OSError) as exc:
        return JSONResponse(
            status_code=500,
            content={"ok": False, "where": "GET /app/installations", "message": str(exc)},
        )
    return {
        "ok": True,
        "account": (data.get("account") or {}).get("login"),
        "app_id": data.get("app_id"),
    }
