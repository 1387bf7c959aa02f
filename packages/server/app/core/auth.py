"""
Authentication for GestTeam.

Supports:
- Email/password login with bcrypt (legacy plaintext rows upgraded on login)
- Session tokens carried as ``Authorization: Bearer`` or a ``t`` query
  parameter (redirect chains cannot carry headers)
- Redis revocation list for logged-out sessions
"""

from __future__ import annotations

import re
from typing import Optional

import bcrypt
import structlog
from fastapi import Depends, Query, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import InvalidToken, Unauthenticated
from app.core.redis import is_token_revoked
from app.core.tokens import user_id_from_claims, verify_token
from app.models.role import Role
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

_BCRYPT_RE = re.compile(r"^\$2[aby]\$")

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def is_bcrypt_hash(stored: Optional[str]) -> bool:
    return bool(stored) and bool(_BCRYPT_RE.match(stored))


def verify_password(password: str, stored: Optional[str]) -> bool:
    """Check a password against a bcrypt hash, or a legacy plaintext value."""
    if not stored:
        return False
    if is_bcrypt_hash(stored):
        try:
            return bcrypt.checkpw(password.encode(), stored.encode())
        except ValueError:
            return False
    return password == stored


def needs_rehash(stored: Optional[str]) -> bool:
    """True when the stored value predates bcrypt and should be upgraded."""
    return bool(stored) and not is_bcrypt_hash(stored)


# ---------------------------------------------------------------------------
# Token extraction
# ---------------------------------------------------------------------------

def extract_token(authorization: Optional[str], t: Optional[str] = None) -> Optional[str]:
    """Bearer header wins; the ``t`` query parameter is the redirect-chain fallback."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return t or None


class SessionIdentity:
    """A verified session: the user plus the token claims it came from."""

    def __init__(self, user: User, claims: dict, token: str):
        self.user = user
        self.claims = claims
        self.token = token
        self.user_id = user.id
        self.jti: Optional[str] = claims.get("jti")


async def authenticate_token(token: Optional[str], session: AsyncSession) -> SessionIdentity:
    """Verify a session token and load its user; any failure is ``Unauthenticated``."""
    try:
        claims = verify_token(token)
        user_id = user_id_from_claims(claims)
    except InvalidToken:
        raise Unauthenticated()

    jti = claims.get("jti")
    if jti and await is_token_revoked(jti):
        raise Unauthenticated("Session has been revoked")

    user = await session.get(User, user_id)
    if user is None or not user.active:
        raise Unauthenticated()
    return SessionIdentity(user=user, claims=claims, token=token)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def get_session_identity(
    request: Request,
    authorization: Optional[str] = Depends(authorization_header),
    t: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> SessionIdentity:
    identity = await authenticate_token(extract_token(authorization, t), session)
    request.state.user_id = identity.user_id
    return identity


async def get_current_user(
    identity: SessionIdentity = Depends(get_session_identity),
) -> User:
    """Main authentication dependency."""
    return identity.user


async def role_name(user: User, session: AsyncSession) -> Optional[str]:
    if user.role_id is None:
        return None
    role = await session.get(Role, user.role_id)
    return role.name if role else None


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()
