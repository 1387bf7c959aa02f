from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from uuid import UUID
from datetime import datetime
from .common import GroupType, MemberRole


class ProjectCreate(BaseModel):
    title: str = Field(min_length=1)
    group_type: GroupType = GroupType.GROUP
    subject_id: UUID


class ProjectRead(BaseModel):
    id: UUID
    title: str
    subject_code: Optional[str] = None
    group_type: GroupType
    repo_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectMemberAdd(BaseModel):
    """Add a member by user id or institutional email."""
    user_id: Optional[UUID] = None
    email: Optional[EmailStr] = None
    role: MemberRole = MemberRole.MEMBER

    @field_validator("role", mode="before")
    @classmethod
    def _upper_role(cls, v):
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _needs_target(self) -> "ProjectMemberAdd":
        if self.user_id is None and self.email is None:
            raise ValueError("user_id or email is required")
        return self


class ProjectMemberRead(BaseModel):
    project_id: UUID
    user_id: UUID
    role: MemberRole
    joined_at: datetime

    model_config = {"from_attributes": True}


class MyProject(BaseModel):
    id: UUID
    title: str
    subject_code: Optional[str] = None
    group_type: GroupType
    repo_url: Optional[str] = None
    role: MemberRole


class MyProjectsResponse(BaseModel):
    projects: List[MyProject]
