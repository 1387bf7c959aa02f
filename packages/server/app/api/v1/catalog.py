"""
Academic catalog endpoints: roles, faculties, careers, subjects.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import catalog
from gestteam_shared.schemas.catalog import (
    CareerCreate,
    CareerUpdate,
    FacultyCreate,
    FacultyRead,
    FacultyUpdate,
    RoleCreate,
    RoleRead,
    SubjectCreate,
    SubjectRead,
    SubjectUpdate,
)

roles_router = APIRouter()
faculties_router = APIRouter()
careers_router = APIRouter()
subjects_router = APIRouter()


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

@roles_router.get("")
async def list_roles(
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    roles = await catalog.list_roles(session)
    return {"data": [RoleRead.model_validate(r) for r in roles]}


@roles_router.post("", status_code=201)
async def create_role(
    body: RoleCreate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    role = await catalog.create_role(body, session)
    return {"data": RoleRead.model_validate(role), "message": "Role created"}


# ---------------------------------------------------------------------------
# Faculties
# ---------------------------------------------------------------------------

@faculties_router.get("")
async def list_faculties(
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    faculties = await catalog.list_faculties(session)
    return {"data": [FacultyRead.model_validate(f) for f in faculties]}


@faculties_router.post("", status_code=201)
async def create_faculty(
    body: FacultyCreate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    faculty = await catalog.create_faculty(body, session)
    return {"data": FacultyRead.model_validate(faculty), "message": "Faculty created"}


@faculties_router.get("/{facultyId}")
async def get_faculty(
    facultyId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": FacultyRead.model_validate(await catalog.get_faculty(facultyId, session))}


@faculties_router.put("/{facultyId}")
async def update_faculty(
    facultyId: uuid.UUID,
    body: FacultyUpdate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    faculty = await catalog.update_faculty(facultyId, body, session)
    return {"data": FacultyRead.model_validate(faculty), "message": "Faculty updated"}


@faculties_router.delete("/{facultyId}")
async def delete_faculty(
    facultyId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await catalog.delete_faculty(facultyId, session)
    return {"ok": True, "message": "Faculty deleted"}


# ---------------------------------------------------------------------------
# Careers
# ---------------------------------------------------------------------------

@careers_router.get("")
async def list_careers(
    faculty_id: Optional[uuid.UUID] = Query(None),
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await catalog.list_careers(session, faculty_id=faculty_id)}


@careers_router.post("", status_code=201)
async def create_career(
    body: CareerCreate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await catalog.create_career(body, session), "message": "Career created"}


@careers_router.put("/{careerId}")
async def update_career(
    careerId: uuid.UUID,
    body: CareerUpdate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await catalog.update_career(careerId, body, session), "message": "Career updated"}


@careers_router.delete("/{careerId}")
async def delete_career(
    careerId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await catalog.delete_career(careerId, session)
    return {"ok": True, "message": "Career deleted"}


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

@subjects_router.get("")
async def list_subjects(
    career_id: Optional[uuid.UUID] = Query(None),
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    subjects = await catalog.list_subjects(session, career_id=career_id)
    return {"data": [SubjectRead.model_validate(s) for s in subjects]}


@subjects_router.post("", status_code=201)
async def create_subject(
    body: SubjectCreate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a subject; its code is derived from the name and kept unique."""
    subject = await catalog.create_subject(body, session)
    return {"data": SubjectRead.model_validate(subject), "message": "Subject created"}


@subjects_router.get("/{subjectId}")
async def get_subject(
    subjectId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": SubjectRead.model_validate(await catalog.get_subject(subjectId, session))}


@subjects_router.put("/{subjectId}")
async def update_subject(
    subjectId: uuid.UUID,
    body: SubjectUpdate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    subject = await catalog.update_subject(subjectId, body, session)
    return {"data": SubjectRead.model_validate(subject), "message": "Subject updated"}


@subjects_router.delete("/{subjectId}")
async def delete_subject(
    subjectId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await catalog.delete_subject(subjectId, session)
    return {"ok": True, "message": "Subject deleted"}
