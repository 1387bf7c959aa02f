"""GitHub linking, installation and provisioning schemas."""

from __future__ import annotations

import re
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .common import AccountType, GroupType, MemberRole, strip_accents

REPO_NAME_MAX_LENGTH = 90

# Statuses GitHub returns for an accepted collaborator PUT.
# 201 = invitation created, 202 = pending org approval, 204 = already a collaborator.
COLLABORATOR_ACCEPTED_STATUSES = frozenset({201, 202, 204})
COLLABORATOR_PENDING_STATUS = 202

_REPO_URL_RE = re.compile(r"github\.com/([^/]+)/([^/]+?)(?:\.git|/)?$", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


# ---------------------------------------------------------------------------
# OAuth state
# ---------------------------------------------------------------------------

class LinkState(BaseModel):
    """What travels through the provider redirect: who is linking and which slot."""
    identity: str
    intent: AccountType


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------

class ProviderEmail(BaseModel):
    email: str
    primary: bool = False
    verified: bool = False


class RepoRef(BaseModel):
    owner: str
    repo: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class LinkedAccountRead(BaseModel):
    account_type: AccountType
    login: Optional[str] = None
    email: Optional[str] = None


class LinkedPair(BaseModel):
    institutional: Optional[LinkedAccountRead] = None
    personal: Optional[LinkedAccountRead] = None


class InstallationRead(BaseModel):
    installation_id: int
    account_login: Optional[str] = None


class OverviewUser(BaseModel):
    id: UUID
    email: str
    name: str


class OverviewProject(BaseModel):
    project_id: UUID
    title: str
    subject_code: Optional[str] = None
    group_type: GroupType
    role: MemberRole
    repo_url: Optional[str] = None


class OverviewResponse(BaseModel):
    user: OverviewUser
    linked: LinkedPair
    linked_github: List[LinkedAccountRead]
    app_installations: List[InstallationRead]
    projects: List[OverviewProject]


class BackfillResponse(BaseModel):
    ok: bool = True
    updated: List[int] = Field(default_factory=list)


class InviteAttempt(BaseModel):
    """One collaborator invitation against one repository."""
    owner: str
    repo: str
    username: str
    via: Optional[str] = None  # app | oauth
    message: Optional[str] = None
    pending: bool = False


class InviteResult(BaseModel):
    invited: List[InviteAttempt] = Field(default_factory=list)
    failed: List[InviteAttempt] = Field(default_factory=list)
    reason: Optional[str] = None


class CollaboratorOutcome(BaseModel):
    username: str
    status: Optional[int] = None
    error: Optional[str] = None


class ProvisionedRepo(BaseModel):
    owner: str
    name: str
    url: str
    full_name: str


class ProvisionResponse(BaseModel):
    ok: bool = True
    repo: ProvisionedRepo
    invited: List[CollaboratorOutcome] = Field(default_factory=list)
    failed: List[CollaboratorOutcome] = Field(default_factory=list)


class RepoSummary(BaseModel):
    full_name: str
    private: bool
    url: str


class CollaboratorSummary(BaseModel):
    login: str
    site_admin: bool = False


class RepoDetail(RepoSummary):
    name: str
    owner: str
    is_org: bool
    collaborators: List[CollaboratorSummary] = Field(default_factory=list)
    group_type: GroupType


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def slugify_repo_name(value: str) -> str:
    """Turn free text into a repository name.

    "SIS101-Sistemas de Control ñ" -> "sis101-sistemas-de-control-n"
    """
    text = strip_accents(str(value or "").lower())
    text = _NON_ALNUM_RE.sub("-", text).strip("-")
    return text[:REPO_NAME_MAX_LENGTH].rstrip("-")


def parse_repo_url(url: Optional[str]) -> Optional[RepoRef]:
    """Extract (owner, repo) from a github.com URL, or None if it is not one."""
    match = _REPO_URL_RE.search(str(url or ""))
    if not match:
        return None
    return RepoRef(owner=match.group(1), repo=match.group(2))
