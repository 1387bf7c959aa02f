"""
Academic catalog service — roles, faculties, careers, subjects.
"""

from __future__ import annotations

import re
import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.cache import TTLCache
from app.core.config import get_settings
from app.core.errors import Conflict, NotFound, ValidationFailed
from app.models.career import Career
from app.models.faculty import Faculty
from app.models.role import Role
from app.models.subject import Subject
from gestteam_shared.schemas.catalog import (
    SUBJECT_CODE_FALLBACK,
    CareerCreate,
    CareerRead,
    CareerUpdate,
    FacultyCreate,
    FacultySummary,
    FacultyUpdate,
    RoleCreate,
    SubjectCreate,
    SubjectUpdate,
    make_subject_code,
)

log = structlog.get_logger()
settings = get_settings()

# Role name -> id; role writes invalidate it
role_ids: TTLCache[uuid.UUID] = TTLCache(settings.role_cache_ttl_seconds)

_TRAILING_DIGITS_RE = re.compile(r"\d+$")

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

async def list_roles(session: AsyncSession) -> list[Role]:
    result = await session.execute(select(Role).order_by(Role.name))
    return list(result.scalars().all())


async def get_role_by_name(name: str, session: AsyncSession) -> Optional[Role]:
    result = await session.execute(select(Role).where(Role.name == name.strip().upper()))
    return result.scalar_one_or_none()


async def create_role(req: RoleCreate, session: AsyncSession) -> Role:
    name = req.name.strip().upper()
    if await get_role_by_name(name, session) is not None:
        raise Conflict("Role already exists")
    role = Role(name=name)
    session.add(role)
    await session.flush()
    role_ids.invalidate(name)
    log.info("role.created", role=name)
    return role


# ---------------------------------------------------------------------------
# Faculties
# ---------------------------------------------------------------------------

async def list_faculties(session: AsyncSession) -> list[Faculty]:
    result = await session.execute(select(Faculty).order_by(Faculty.name))
    return list(result.scalars().all())


async def get_faculty(faculty_id: uuid.UUID, session: AsyncSession) -> Faculty:
    faculty = await session.get(Faculty, faculty_id)
    if faculty is None:
        raise NotFound("Faculty not found")
    return faculty


async def create_faculty(req: FacultyCreate, session: AsyncSession) -> Faculty:
    faculty = Faculty(name=req.name, theme=req.theme)
    session.add(faculty)
    await session.flush()
    log.info("faculty.created", faculty_id=str(faculty.id))
    return faculty


async def update_faculty(
    faculty_id: uuid.UUID, req: FacultyUpdate, session: AsyncSession
) -> Faculty:
    faculty = await get_faculty(faculty_id, session)
    if req.name is not None:
        faculty.name = req.name
    if "theme" in req.model_fields_set:
        faculty.theme = req.theme
    session.add(faculty)
    await session.flush()
    log.info("faculty.updated", faculty_id=str(faculty_id))
    return faculty


async def delete_faculty(faculty_id: uuid.UUID, session: AsyncSession) -> None:
    faculty = await get_faculty(faculty_id, session)
    in_use = await session.execute(select(Career.id).where(Career.faculty_id == faculty_id).limit(1))
    if in_use.first() is not None:
        raise Conflict("Faculty still has careers")
    await session.delete(faculty)
    await session.flush()
    log.info("faculty.deleted", faculty_id=str(faculty_id))


# ---------------------------------------------------------------------------
# Careers
# ---------------------------------------------------------------------------

def career_read(career: Career, faculty: Optional[Faculty]) -> CareerRead:
    return CareerRead(
        id=career.id,
        name=career.name,
        sigla=career.sigla,
        faculty=FacultySummary(id=faculty.id, name=faculty.name) if faculty else None,
    )


async def list_careers(
    session: AsyncSession, *, faculty_id: Optional[uuid.UUID] = None
) -> list[CareerRead]:
    query = select(Career, Faculty).join(Faculty, Faculty.id == Career.faculty_id)
    if faculty_id is not None:
        query = query.where(Career.faculty_id == faculty_id)
    result = await session.execute(query.order_by(Career.name))
    return [career_read(c, f) for c, f in result.all()]


async def get_career(career_id: uuid.UUID, session: AsyncSession) -> Career:
    career = await session.get(Career, career_id)
    if career is None:
        raise NotFound("Career not found")
    return career


async def _faculty_for_career(faculty_id: uuid.UUID, session: AsyncSession) -> Faculty:
    faculty = await session.get(Faculty, faculty_id)
    if faculty is None:
        raise ValidationFailed("The given faculty does not exist")
    return faculty


async def create_career(req: CareerCreate, session: AsyncSession) -> CareerRead:
    faculty = await _faculty_for_career(req.faculty_id, session)
    career = Career(
        name=req.name.strip(),
        sigla=req.sigla.strip().upper() if req.sigla else None,
        faculty_id=faculty.id,
    )
    session.add(career)
    await session.flush()
    log.info("career.created", career_id=str(career.id), faculty_id=str(faculty.id))
    return career_read(career, faculty)


async def update_career(
    career_id: uuid.UUID, req: CareerUpdate, session: AsyncSession
) -> CareerRead:
    career = await get_career(career_id, session)
    if req.name is not None:
        career.name = req.name.strip()
    if req.faculty_id is not None:
        career.faculty_id = (await _faculty_for_career(req.faculty_id, session)).id
    if "sigla" in req.model_fields_set:
        career.sigla = req.sigla.strip().upper() if req.sigla else None
    session.add(career)
    await session.flush()
    log.info("career.updated", career_id=str(career_id))
    return career_read(career, await session.get(Faculty, career.faculty_id))


async def delete_career(career_id: uuid.UUID, session: AsyncSession) -> None:
    career = await get_career(career_id, session)
    in_use = await session.execute(select(Subject.id).where(Subject.career_id == career_id).limit(1))
    if in_use.first() is not None:
        raise Conflict("Career still has subjects")
    await session.delete(career)
    await session.flush()
    log.info("career.deleted", career_id=str(career_id))


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

async def unique_subject_code(base: str, session: AsyncSession) -> str:
    """``base``, or ``base2``, ``base3``... whichever is free first."""
    seed = base or SUBJECT_CODE_FALLBACK
    code, n = seed, 1
    while True:
        taken = await session.execute(select(Subject.id).where(Subject.code == code))
        if taken.first() is None:
            return code
        n += 1
        code = f"{seed}{n}"


async def list_subjects(
    session: AsyncSession, *, career_id: Optional[uuid.UUID] = None
) -> list[Subject]:
    query = select(Subject)
    if career_id is not None:
        query = query.where(Subject.career_id == career_id)
    result = await session.execute(query.order_by(Subject.name))
    return list(result.scalars().all())


async def get_subject(subject_id: uuid.UUID, session: AsyncSession) -> Subject:
    subject = await session.get(Subject, subject_id)
    if subject is None:
        raise NotFound("Subject not found")
    return subject


async def create_subject(req: SubjectCreate, session: AsyncSession) -> Subject:
    await get_career_for_subject(req.career_id, session)
    name = req.name.strip()
    subject = Subject(
        name=name,
        code=await unique_subject_code(make_subject_code(name), session),
        career_id=req.career_id,
    )
    session.add(subject)
    await session.flush()
    log.info("subject.created", subject_id=str(subject.id), code=subject.code)
    return subject


async def get_career_for_subject(career_id: uuid.UUID, session: AsyncSession) -> Career:
    career = await session.get(Career, career_id)
    if career is None:
        raise ValidationFailed("The given career does not exist")
    return career


async def update_subject(
    subject_id: uuid.UUID, req: SubjectUpdate, session: AsyncSession
) -> Subject:
    """Renaming regenerates the code only when its base changes."""
    subject = await get_subject(subject_id, session)
    if req.career_id is not None:
        subject.career_id = (await get_career_for_subject(req.career_id, session)).id
    if req.name is not None:
        name = req.name.strip()
        new_base = make_subject_code(name) or SUBJECT_CODE_FALLBACK
        if new_base != _TRAILING_DIGITS_RE.sub("", subject.code or ""):
            subject.code = await unique_subject_code(new_base, session)
        subject.name = name
    session.add(subject)
    await session.flush()
    log.info("subject.updated", subject_id=str(subject_id), code=subject.code)
    return subject


async def delete_subject(subject_id: uuid.UUID, session: AsyncSession) -> None:
    subject = await get_subject(subject_id, session)
    await session.delete(subject)
    await session.flush()
    log.info("subject.deleted", subject_id=str(subject_id))
