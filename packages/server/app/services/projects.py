"""
Project service — class projects and their membership.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.models.career import Career
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.subject import Subject
from app.models.user import User
from gestteam_shared.schemas.common import MemberRole
from gestteam_shared.schemas.projects import MyProject, ProjectCreate, ProjectMemberAdd

log = structlog.get_logger()


async def create_project(req: ProjectCreate, user: User, session: AsyncSession) -> Project:
    """Create a project for a subject; the creator becomes its OWNER."""
    title = req.title.strip()
    if not title:
        raise ValidationFailed("Title is required")

    subject = await session.get(Subject, req.subject_id)
    if subject is None:
        raise ValidationFailed("The subject does not exist")
    career = await session.get(Career, subject.career_id)
    if user.faculty_id and career is not None and career.faculty_id != user.faculty_id:
        raise Forbidden("The subject does not belong to your faculty")

    project = Project(title=title, group_type=req.group_type.value, subject_code=subject.code)
    session.add(project)
    await session.flush()
    session.add(ProjectMember(project_id=project.id, user_id=user.id, role=MemberRole.OWNER.value))
    await session.flush()
    log.info("project.created", project_id=str(project.id), owner=str(user.id))
    return project


async def add_member(
    project_id: uuid.UUID, req: ProjectMemberAdd, caller: User, session: AsyncSession
) -> ProjectMember:
    """OWNER-only; the new member is found by id or institutional email."""
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")

    own = await session.get(ProjectMember, (project_id, caller.id))
    if own is None or own.role.upper() != MemberRole.OWNER.value:
        raise Forbidden("Only the project OWNER can add members")

    target = await session.get(User, req.user_id) if req.user_id else None
    if target is None and req.email:
        result = await session.execute(select(User).where(User.email == req.email.lower()))
        target = result.scalar_one_or_none()
    if target is None:
        raise NotFound("User to add does not exist")

    if await session.get(ProjectMember, (project_id, target.id)) is not None:
        raise Conflict("The user is already a project member")

    member = ProjectMember(project_id=project_id, user_id=target.id, role=req.role.value)
    session.add(member)
    await session.flush()
    log.info(
        "project.member_added",
        project_id=str(project_id),
        user_id=str(target.id),
        role=member.role,
    )
    return member


async def my_projects(user_id: uuid.UUID, session: AsyncSession) -> list[MyProject]:
    """Projects the user belongs to, most recently joined first."""
    result = await session.execute(
        select(Project, ProjectMember.role)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(ProjectMember.user_id == user_id)
        .order_by(ProjectMember.joined_at.desc())
    )
    return [
        MyProject(
            id=p.id,
            title=p.title,
            subject_code=p.subject_code,
            group_type=p.group_type,
            repo_url=p.repo_url,
            role=role,
        )
        for p, role in result.all()
    ]
