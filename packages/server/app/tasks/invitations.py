"""
Background task: invite a freshly linked PERSONAL account on the user's
project repositories.

Dispatched after an OAuth link succeeds. It runs in its own database
session; the outcome goes to the log and never back to the link request.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog

from app.core.database import get_session_context
from app.core.errors import GestTeamError, MissingPersonalLink
from app.core.github import GitHubProvider, get_github
from app.services.invitations import invite_personal_to_project_repos
from gestteam_shared.schemas.github import InviteResult

log = structlog.get_logger()


async def invite_after_link(
    user_id: uuid.UUID, github: Optional[GitHubProvider] = None
) -> Optional[InviteResult]:
    """Run the inviter for one user. Returns the tally, or None if it could not run."""
    github = github or get_github()
    try:
        async with get_session_context() as session:
            result = await invite_personal_to_project_repos(user_id, session, github)
    except MissingPersonalLink:
        log.info("invite_after_link.skipped", user_id=str(user_id), reason="no personal link")
        return None
    except GestTeamError as exc:
        log.warning("invite_after_link.failed", user_id=str(user_id), error=exc.message)
        return None
    except Exception:
        log.exception("invite_after_link.crashed", user_id=str(user_id))
        return None

    log.info(
        "invite_after_link.done",
        user_id=str(user_id),
        invited=len(result.invited),
        failed=len(result.failed),
        reason=result.reason,
    )
    return result
