"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from studybuddy.domain.models import DomainModel
from studybuddy.domain.plans import UsageType


class UsageCheckBody(DomainModel):
    student_id: int
    usage_type: UsageType


class UpgradeBody(DomainModel):
    student_id: int
    requested_plan: str | None = None


class TTSIncrementBody(DomainModel):
    student_id: int
    character_count: int


class InstitutionSessionBody(DomainModel):
    session_token: str = Field(min_length=1)
    institution_id: int
    institution_type: Literal["school", "coaching"]


class RejectBody(InstitutionSessionBody):
    reason: str | None = Field(default=None, max_length=500)


class AdminSessionBody(DomainModel):
    session_token: str = Field(min_length=1)


class ActionResult(DomainModel):
    success: bool = True
    message: str


__all__ = [
    "ActionResult",
    "AdminSessionBody",
    "InstitutionSessionBody",
    "RejectBody",
    "TTSIncrementBody",
    "UpgradeBody",
    "UsageCheckBody",
]
