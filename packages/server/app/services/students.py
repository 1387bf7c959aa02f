"""
Student service — users holding the ESTUDIANTE role.

Email and code are derived from the student's names, career and CI. The
ESTUDIANTE role id is looked up through a TTL cache.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password
from app.core.config import get_settings
from app.core.errors import Conflict, NotFound, ValidationFailed
from app.models.career import Career
from app.models.faculty import Faculty
from app.models.role import Role
from app.models.user import User
from app.services.catalog import role_ids
from gestteam_shared.schemas.common import RoleName
from gestteam_shared.schemas.students import (
    SIGLA_FALLBACK,
    StudentCreate,
    StudentRead,
    StudentUpdate,
    build_student_code,
    build_student_email,
    sigla_from_name,
)

log = structlog.get_logger()
settings = get_settings()


async def student_role_id(session: AsyncSession) -> uuid.UUID:
    """Id of the ESTUDIANTE role; the role must exist."""

    async def load() -> Optional[uuid.UUID]:
        result = await session.execute(
            select(Role.id).where(Role.name == RoleName.STUDENT.value)
        )
        return result.scalar_one_or_none()

    role_id = await role_ids.get_or_load(RoleName.STUDENT.value, load)
    if role_id is None:
        raise ValidationFailed("Create the ESTUDIANTE role first")
    return role_id


async def career_sigla(
    career_id: Optional[uuid.UUID], faculty_id: Optional[uuid.UUID], session: AsyncSession
) -> str:
    """Career sigla, else derived from the career or faculty name, else GEN."""
    if career_id is not None:
        career = await session.get(Career, career_id)
        if career is not None:
            return career.sigla or sigla_from_name(career.name)
    if faculty_id is not None:
        faculty = await session.get(Faculty, faculty_id)
        if faculty is not None:
            return sigla_from_name(faculty.name)
    return SIGLA_FALLBACK


async def _validate_refs(
    faculty_id: Optional[uuid.UUID], career_id: Optional[uuid.UUID], session: AsyncSession
) -> None:
    if faculty_id is not None and await session.get(Faculty, faculty_id) is None:
        raise ValidationFailed("The given faculty does not exist")
    if career_id is not None and await session.get(Career, career_id) is None:
        raise ValidationFailed("The given career does not exist")


async def _to_read(user: User, session: AsyncSession) -> StudentRead:
    faculty = await session.get(Faculty, user.faculty_id) if user.faculty_id else None
    career = await session.get(Career, user.career_id) if user.career_id else None
    code = user.code or build_student_code(
        sigla_from_name((career.name if career else None) or (faculty.name if faculty else "")),
        user.ci,
    )
    return StudentRead(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name or "",
        email=user.email,
        phone=user.phone or "",
        ci=user.ci,
        faculty=faculty.name if faculty else "",
        career=career.name if career else "",
        code=code,
        active=user.active,
    )


async def _get_student(student_id: uuid.UUID, session: AsyncSession) -> User:
    role_id = await student_role_id(session)
    user = await session.get(User, student_id)
    if user is None or user.role_id != role_id:
        raise NotFound("Student not found")
    return user


async def _ensure_unique(
    email: str, code: str, session: AsyncSession, *, exclude: Optional[uuid.UUID] = None
) -> None:
    # pending edits to the row being checked must not flush first
    with session.sync_session.no_autoflush:
        result = await session.execute(
            select(User.id).where(or_(User.email == email, User.code == code))
        )
    if any(uid != exclude for uid in result.scalars().all()):
        raise Conflict("Email or code already exists")


async def _flush(session: AsyncSession) -> None:
    try:
        await session.flush()
    except IntegrityError as exc:
        raise Conflict("Email or code already exists") from exc


async def list_students(session: AsyncSession, *, q: Optional[str] = None) -> list[StudentRead]:
    role_id = await student_role_id(session)
    query = select(User).where(User.role_id == role_id)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
                User.code.ilike(pattern),
            )
        )
    result = await session.execute(query.order_by(User.created_at.desc()))
    return [await _to_read(u, session) for u in result.scalars().all()]


async def get_student(student_id: uuid.UUID, session: AsyncSession) -> StudentRead:
    return await _to_read(await _get_student(student_id, session), session)


async def create_student(req: StudentCreate, session: AsyncSession) -> StudentRead:
    role_id = await student_role_id(session)
    await _validate_refs(req.faculty_id, req.career_id, session)

    email = build_student_email(
        req.first_name,
        req.last_name,
        prefix=settings.student_email_prefix,
        domain=settings.institution_domain,
    )
    code = build_student_code(await career_sigla(req.career_id, req.faculty_id, session), req.ci)
    await _ensure_unique(email, code, session)

    user = User(
        first_name=req.first_name.strip(),
        last_name=req.last_name.strip(),
        phone=req.phone,
        ci=req.ci,
        email=email,
        code=code,
        password_hash=hash_password(req.password),
        role_id=role_id,
        faculty_id=req.faculty_id,
        career_id=req.career_id,
        active=req.active,
    )
    session.add(user)
    await _flush(session)
    log.info("student.created", user_id=str(user.id), code=code)
    return await _to_read(user, session)


async def update_student(
    student_id: uuid.UUID, req: StudentUpdate, session: AsyncSession
) -> StudentRead:
    """Name, career, faculty or CI changes re-derive the email and code."""
    user = await _get_student(student_id, session)
    fields = req.model_fields_set
    await _validate_refs(req.faculty_id, req.career_id, session)

    for name in ("first_name", "last_name", "phone", "ci", "faculty_id", "career_id", "active"):
        value = getattr(req, name)
        if name in fields and (value is not None or name in ("faculty_id", "career_id")):
            setattr(user, name, value.strip() if isinstance(value, str) else value)
    if req.password:
        user.password_hash = hash_password(req.password)

    if fields & {"first_name", "last_name"}:
        user.email = build_student_email(
            user.first_name,
            user.last_name,
            prefix=settings.student_email_prefix,
            domain=settings.institution_domain,
        )
    if fields & {"ci", "faculty_id", "career_id"}:
        user.code = build_student_code(
            await career_sigla(user.career_id, user.faculty_id, session), user.ci
        )
    await _ensure_unique(user.email, user.code, session, exclude=user.id)

    session.add(user)
    await _flush(session)
    log.info("student.updated", user_id=str(student_id), fields=sorted(fields))
    return await _to_read(user, session)


async def delete_student(student_id: uuid.UUID, session: AsyncSession) -> None:
    user = await _get_student(student_id, session)
    await session.delete(user)
    await session.flush()
    log.info("student.deleted", user_id=str(student_id))
