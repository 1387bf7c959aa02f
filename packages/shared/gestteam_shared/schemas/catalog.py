"""Academic catalog schemas: roles, faculties, careers, subjects."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .common import strip_accents

SUBJECT_CODE_FALLBACK = "MAT"

# Connectors ignored when deriving a subject code
STOPWORDS = frozenset({
    "a", "al", "con", "de", "del", "el", "la", "las", "los", "en", "para", "por", "sin",
    "y", "e", "o", "u", "un", "una", "uno", "unos", "unas", "the", "and", "of",
})

_ROMAN_RE = re.compile(r"^[IVXLCDM]+$", re.IGNORECASE)
_PUNCT_RE = re.compile(r"[^A-Za-z0-9\s]+")


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=60)


class RoleRead(BaseModel):
    id: UUID
    name: str

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Faculties
# ---------------------------------------------------------------------------

class FacultyCreate(BaseModel):
    name: str = Field(min_length=1)
    theme: Optional[Dict[str, Any]] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Faculty name is required")
        return v


class FacultyUpdate(BaseModel):
    name: Optional[str] = None
    theme: Optional[Dict[str, Any]] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Faculty name cannot be empty")
        return v


class FacultyRead(BaseModel):
    id: UUID
    name: str
    theme: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class FacultySummary(BaseModel):
    id: UUID
    name: str


# ---------------------------------------------------------------------------
# Careers
# ---------------------------------------------------------------------------

class CareerCreate(BaseModel):
    name: str = Field(min_length=1)
    faculty_id: UUID
    sigla: Optional[str] = Field(default=None, max_length=10)


class CareerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    faculty_id: Optional[UUID] = None
    sigla: Optional[str] = Field(default=None, max_length=10)


class CareerRead(BaseModel):
    id: UUID
    name: str
    sigla: Optional[str] = None
    faculty: Optional[FacultySummary] = None


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

class SubjectCreate(BaseModel):
    name: str = Field(min_length=1)
    career_id: UUID


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    career_id: Optional[UUID] = None


class SubjectRead(BaseModel):
    id: UUID
    name: str
    code: str
    career_id: UUID

    model_config = {"from_attributes": True}


def make_subject_code(name: Optional[str]) -> str:
    """Derive a short code from a subject name.

    "Sistemas de Control" -> "SCO", "Redes II" -> "RED",
    "Ingenieria de Software Aplicada" -> "ISA".
    """
    if not name:
        return ""
    raw = _PUNCT_RE.sub(" ", strip_accents(name)).strip()
    tokens = [
        t.upper()
        for t in raw.split()
        if t.lower() not in STOPWORDS and not _ROMAN_RE.match(t) and not t.isdigit()
    ]
    if not tokens:
        return "".join(raw.split()).upper()[:3] or SUBJECT_CODE_FALLBACK
    if len(tokens) == 1:
        return tokens[0][:3]
    if len(tokens) == 2:
        return tokens[0][0] + tokens[1][:2]
    return tokens[0][0] + tokens[1][0] + tokens[2][0]
