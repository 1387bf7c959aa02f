"""
Signed tokens.

- Session tokens: HS256, ``{uid, iat, exp, jti}``, 24h by default.
- State tokens: HS256, short-lived, wrap a ``LinkState`` so the OAuth
  callback can recover who is linking and into which slot.
- App tokens: RS256, ``{iat, exp, iss}``, signed with the GitHub App
  private key (GitHub caps their lifetime at 10 minutes).

Every token is a compact JWT, which is URL-safe and survives being
round-tripped through provider redirects untouched.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import jwt
from pydantic import ValidationError

from app.core.config import get_settings
from app.core.errors import InvalidToken
from gestteam_shared.schemas.github import LinkState

settings = get_settings()

APP_TOKEN_ALGORITHM = "RS256"
APP_TOKEN_BACKDATE_SECONDS = 60
APP_TOKEN_LIFETIME_SECONDS = 9 * 60


class GitHubAppConfigError(RuntimeError):
    """The GitHub App id or private key is not configured."""


# ---------------------------------------------------------------------------
# Session / state tokens
# ---------------------------------------------------------------------------

def issue_session_token(
    user_id: uuid.UUID, *, expires_delta: timedelta | None = None
) -> str:
    """Sign a session token for a logged-in user."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.session_expire_minutes))
    payload = {
        "uid": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def issue_state_token(
    state: LinkState, *, expires_delta: timedelta | None = None
) -> str:
    """Sign the OAuth ``state`` parameter."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.state_expire_minutes))
    payload = {
        "t": state.identity,
        "type": state.intent.value,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: Optional[str]) -> dict:
    """Decode and verify a token signed with the server secret.

    Raises InvalidToken for any failure; callers must not tell the user
    whether the token was malformed, tampered with or expired.
    """
    if not token:
        raise InvalidToken()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise InvalidToken(detail=type(exc).__name__) from exc


def decode_state_token(token: Optional[str]) -> LinkState:
    """Verify a state token and return its ``{identity, intent}`` pair."""
    payload = verify_token(token)
    try:
        return LinkState(identity=payload.get("t") or "", intent=payload.get("type"))
    except ValidationError as exc:
        raise InvalidToken(detail="bad state payload") from exc


def user_id_from_claims(payload: dict[str, Any]) -> uuid.UUID:
    """Return the user id carried by verified session claims."""
    try:
        return uuid.UUID(str(payload["uid"]))
    except (KeyError, ValueError) as exc:
        raise InvalidToken(detail="missing uid") from exc


# ---------------------------------------------------------------------------
# GitHub App token
# ---------------------------------------------------------------------------

def load_app_private_key() -> str:
    """Inline PEM (with escaped newlines allowed) wins over a key file path."""
    if settings.github_app_private_key:
        return settings.github_app_private_key.replace("\\n", "\n")
    if not settings.github_app_private_key_path:
        raise GitHubAppConfigError(
            "Set GT_GITHUB_APP_PRIVATE_KEY_PATH or GT_GITHUB_APP_PRIVATE_KEY"
        )
    return Path(settings.github_app_private_key_path).expanduser().read_text()


def issue_app_token(*, now: Optional[int] = None) -> str:
    """Sign the JWT that authenticates as the GitHub App itself."""
    if not settings.github_app_id:
        raise GitHubAppConfigError("Set GT_GITHUB_APP_ID")
    now = int(time.time()) if now is None else now
    payload = {
        "iat": now - APP_TOKEN_BACKDATE_SECONDS,
        "exp": now + APP_TOKEN_LIFETIME_SECONDS,
        "iss": str(settings.github_app_id),
    }
    return jwt.encode(payload, load_app_private_key(), algorithm=APP_TOKEN_ALGORITHM)
