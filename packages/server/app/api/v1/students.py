"""
Student endpoints. Students are users holding the ESTUDIANTE role; their
institutional email and code are derived, never supplied.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import students as student_service
from gestteam_shared.schemas.students import StudentCreate, StudentUpdate

router = APIRouter()


@router.get("", tags=["Students"])
async def list_students(
    q: Optional[str] = Query(None),
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await student_service.list_students(session, q=q), "message": "Students loaded"}


@router.post("", status_code=201, tags=["Students"])
async def create_student(
    body: StudentCreate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await student_service.create_student(body, session), "message": "Student created"}


@router.get("/{studentId}", tags=["Students"])
async def get_student(
    studentId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await student_service.get_student(studentId, session)}


@router.put("/{studentId}", tags=["Students"])
async def update_student(
    studentId: uuid.UUID,
    body: StudentUpdate,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    student = await student_service.update_student(studentId, body, session)
    return {"data": student, "message": "Student updated"}


@router.delete("/{studentId}", tags=["Students"])
async def delete_student(
    studentId: uuid.UUID,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await student_service.delete_student(studentId, session)
    return {"ok": True, "message": "Student deleted"}
