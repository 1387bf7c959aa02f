"""
Authentication endpoints.

- Institutional email/password login returning a session token
- Logout (token revoked in Redis until it would expire)
- Current user
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionIdentity, get_session_identity, role_name
from app.core.database import get_session
from app.core.redis import revoke_token
from app.services import users as user_service
from gestteam_shared.schemas.users import LoginRequest, LoginResponse, UserResponse

log = structlog.get_logger()
router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with an institutional email and password."""
    return await user_service.login(body, session)


@router.post("/logout")
async def logout(identity: SessionIdentity = Depends(get_session_identity)):
    """Invalidate the current session token."""
    if identity.jti:
        exp = identity.claims.get("exp")
        remaining = int(exp - datetime.now(timezone.utc).timestamp()) if exp else 0
        await revoke_token(identity.jti, remaining)
    log.info("auth.logout", user_id=str(identity.user_id))
    return {"ok": True, "message": "Logged out"}


@router.get("/me")
async def me(
    identity: SessionIdentity = Depends(get_session_identity),
    session: AsyncSession = Depends(get_session),
):
    """The authenticated user and their role name."""
    return {
        "data": UserResponse.model_validate(identity.user),
        "role": await role_name(identity.user, session),
    }
