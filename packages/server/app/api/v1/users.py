"""
User Management API endpoints.

GET    /users            — List users
POST   /users            — Create a user
GET    /users/{userId}   — Get a user
PUT    /users/{userId}   — Update a user
DELETE /users/{userId}   — Delete a user
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import users as user_service
from gestteam_shared.schemas.users import (
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)

router = APIRouter()


@router.get("", tags=["Users"])
async def list_users(
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    users = await user_service.list_users(session)
    return {"data": [UserResponse.model_validate(u) for u in users], "message": "Users loaded"}


@router.post("", status_code=201, tags=["Users"])
async def create_user(
    body: UserCreateRequest,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create an account; the password is stored as a bcrypt hash."""
    user = await user_service.create_user(body, session)
    return {"data": UserResponse.model_validate(user), "message": "User created"}


@router.get("/{userId}", tags=["Users"])
async def get_user(
    userId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.get_user(userId, session)
    return {"data": UserResponse.model_validate(user), "message": "User loaded"}


@router.put("/{userId}", tags=["Users"])
async def update_user(
    userId: uuid.UUID,
    body: UserUpdateRequest,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.update_user(userId, body, session)
    return {"data": UserResponse.model_validate(user), "message": "User updated"}


@router.delete("/{userId}", tags=["Users"])
async def delete_user(
    userId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.delete_user(userId, session)
    return {"data": UserResponse.model_validate(user), "message": "User deleted"}
