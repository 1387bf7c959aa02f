"""Student schemas and the institutional email / code derivation rules."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .common import strip_accents

SIGLA_FALLBACK = "GEN"
DEFAULT_STUDENT_PASSWORD = "123456"


class StudentCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    phone: str = ""
    ci: int = Field(gt=0)
    faculty_id: Optional[UUID] = None
    career_id: Optional[UUID] = None
    password: str = DEFAULT_STUDENT_PASSWORD
    active: bool = True


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = None
    phone: Optional[str] = None
    ci: Optional[int] = Field(default=None, gt=0)
    faculty_id: Optional[UUID] = None
    career_id: Optional[UUID] = None
    password: Optional[str] = Field(default=None, min_length=1)
    active: Optional[bool] = None


class StudentRead(BaseModel):
    id: UUID
    first_name: str
    last_name: str = ""
    email: str
    phone: str = ""
    ci: Optional[int] = None
    faculty: str = ""
    career: str = ""
    code: str
    active: bool = True


def _lower(value: str) -> str:
    return strip_accents(value or "").strip().lower()


def build_student_email(first_names: str, last_names: str, *, prefix: str, domain: str) -> str:
    """<prefix>.<firstnames>.<surname1>.<surname2[:2]>@<domain>, accents stripped."""
    names = "".join(_lower(first_names).split())
    surnames = _lower(last_names).split()
    first_surname = surnames[0] if surnames else ""
    second_surname = surnames[1][:2] if len(surnames) > 1 else ""
    local = ".".join(part for part in (prefix, names, first_surname, second_surname) if part)
    return f"{local}@{domain}"


def sigla_from_name(name: Optional[str]) -> str:
    """First three letters of the last word, uppercased ("Ingenieria de Sistemas" -> "SIS")."""
    words = _lower(name or "").split()
    if not words:
        return SIGLA_FALLBACK
    return words[-1][:3].upper() or SIGLA_FALLBACK


def build_student_code(sigla: Optional[str], ci: Optional[int]) -> str:
    return f"{(sigla or SIGLA_FALLBACK).upper()}{ci or ''}"
