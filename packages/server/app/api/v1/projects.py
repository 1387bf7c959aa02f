"""
Project endpoints: creation, membership, the caller's projects.

Only a project's OWNER may add members; repository provisioning lives
under ``/github/project/{id}/repo``.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import projects as project_service
from gestteam_shared.schemas.projects import (
    MyProjectsResponse,
    ProjectCreate,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectRead,
)

router = APIRouter()


@router.post("", tags=["Projects"])
async def create_project(
    body: ProjectCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a project for a subject; the caller becomes OWNER."""
    project = await project_service.create_project(body, user, session)
    return {"ok": True, "project": ProjectRead.model_validate(project)}


@router.post("/{projectId}/members", tags=["Projects"])
async def add_member(
    projectId: uuid.UUID,
    body: ProjectMemberAdd,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    member = await project_service.add_member(projectId, body, user, session)
    return {"ok": True, "member": ProjectMemberRead.model_validate(member)}


@router.get("/my", response_model=MyProjectsResponse, tags=["Projects"])
async def my_projects(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return MyProjectsResponse(projects=await project_service.my_projects(user.id, session))
