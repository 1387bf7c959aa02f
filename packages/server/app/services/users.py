"""
User management service — account CRUD and institutional login.
"""

from __future__ import annotations

import re
import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import (
    get_user_by_email,
    hash_password,
    needs_rehash,
    role_name,
    verify_password,
)
from app.core.config import get_settings
from app.core.errors import NotFound, Unauthenticated, ValidationFailed
from app.core.tokens import issue_session_token
from app.models.role import Role
from app.models.user import User
from gestteam_shared.schemas.users import (
    LoginRequest,
    LoginResponse,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)

log = structlog.get_logger()
settings = get_settings()

LOGIN_FAILED = "Invalid email or password"


def _institutional_email_re(domain: str) -> re.Pattern:
    return re.compile(rf"^[a-zA-Z0-9._%+-]+@{re.escape(domain)}$")


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.created_at))
    return list(result.scalars().all())


async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def _ensure_email_free(
    email: str, session: AsyncSession, *, exclude: Optional[uuid.UUID] = None
) -> None:
    existing = await get_user_by_email(email, session)
    if existing is not None and existing.id != exclude:
        raise ValidationFailed("That email is already registered")


async def _ensure_role(role_id: uuid.UUID, session: AsyncSession) -> None:
    if await session.get(Role, role_id) is None:
        raise ValidationFailed("Unknown role")


async def create_user(req: UserCreateRequest, session: AsyncSession) -> User:
    email = req.email.strip().lower()
    await _ensure_email_free(email, session)
    await _ensure_role(req.role_id, session)

    user = User(
        first_name=req.first_name.strip(),
        last_name=req.last_name.strip(),
        phone=req.phone,
        ci=req.ci,
        email=email,
        password_hash=hash_password(req.password),
        role_id=req.role_id,
        active=req.active,
    )
    session.add(user)
    await session.flush()
    log.info("user.created", user_id=str(user.id), role_id=str(req.role_id))
    return user


async def update_user(
    user_id: uuid.UUID, req: UserUpdateRequest, session: AsyncSession
) -> User:
    user = await get_user(user_id, session)
    changes = req.model_dump(exclude_unset=True, exclude={"password", "email"})

    if req.email is not None:
        email = req.email.strip().lower()
        await _ensure_email_free(email, session, exclude=user.id)
        user.email = email
    if req.role_id is not None:
        await _ensure_role(req.role_id, session)
    if req.password:
        user.password_hash = hash_password(req.password)

    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)

    session.add(user)
    await session.flush()
    log.info("user.updated", user_id=str(user_id), fields=sorted(req.model_fields_set))
    return user


async def delete_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await get_user(user_id, session)
    await session.delete(user)
    await session.flush()
    log.info("user.deleted", user_id=str(user_id))
    return user


async def login(req: LoginRequest, session: AsyncSession) -> LoginResponse:
    """Institutional email + password login; returns a session token.

    Rows still holding a plaintext password are upgraded to bcrypt on the
    first successful login.
    """
    email = (req.email or "").strip().lower()
    if not email or not req.password:
        raise ValidationFailed("Email and password are required")
    domain = settings.institution_domain
    if not _institutional_email_re(domain).match(email):
        raise ValidationFailed(f"The email must be institutional (@{domain})")

    user = await get_user_by_email(email, session)
    if user is None or not user.active or not verify_password(req.password, user.password_hash):
        log.info("auth.login_failed", email=email)
        raise Unauthenticated(LOGIN_FAILED)

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(req.password)
        session.add(user)
        await session.flush()
        log.info("auth.password_rehashed", user_id=str(user.id))

    log.info("auth.login", user_id=str(user.id))
    return LoginResponse(
        message="Signed in",
        data=UserResponse.model_validate(user),
        role=await role_name(user, session),
        token=issue_session_token(user.id),
    )
