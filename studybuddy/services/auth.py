"""Session-token validation and institution membership checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.db.models.core import CoachingCenter, School, SessionToken, Student
from studybuddy.logging import logger
from studybuddy.services.exceptions import InstitutionSuspended, SessionInvalid
from studybuddy.utils.datetime import as_utc, utc_now

InstitutionKind = Literal["school", "coaching"]


@dataclass(frozen=True, slots=True)
class InstitutionContext:
    kind: InstitutionKind
    id: int
    name: str

    @property
    def membership_field(self) -> str:
        return "school_id" if self.kind == "school" else "coaching_center_id"

    def owns(self, student: Student) -> bool:
        return getattr(student, self.membership_field) == self.id


@dataclass(frozen=True, slots=True)
class AdminContext:
    id: int


class SessionAuthenticator:
    """Turns a bearer session token into an acting principal."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def authenticate_institution(
        self,
        token: str,
        institution_kind: InstitutionKind,
        institution_id: int,
    ) -> InstitutionContext:
        record = await self._valid_token(token, institution_kind)
        if record.user_id != institution_id:
            logger.warning(
                "session_institution_mismatch",
                token_user_id=record.user_id,
                institution_id=institution_id,
            )
            raise SessionInvalid("Session does not belong to this institution.")

        model = School if institution_kind == "school" else CoachingCenter
        institution = await self.session.get(model, institution_id)
        if institution is None:
            raise SessionInvalid("Institution no longer exists.")
        if institution.is_banned:
            raise InstitutionSuspended(
                "Institution is banned.", code="auth.institution_banned"
            )
        if isinstance(institution, School) and institution.fee_paid is False:
            raise InstitutionSuspended(
                "School fees are unpaid.", code="auth.fee_unpaid"
            )
        return InstitutionContext(kind=institution_kind, id=institution.id, name=institution.name)

    async def authenticate_admin(self, token: str) -> AdminContext:
        record = await self._valid_token(token, "admin")
        return AdminContext(id=record.user_id)

    async def _valid_token(self, token: str, user_type: str) -> SessionToken:
        if not token:
            raise SessionInvalid("Session token is required.")
        stmt = select(SessionToken).where(SessionToken.token == token)
        record = (await self.session.execute(stmt)).scalar_one_or_none()
        if record is None or record.is_revoked:
            raise SessionInvalid("Invalid or revoked session.")
        expires_at = as_utc(record.expires_at)
        if expires_at is None or expires_at < utc_now():
            raise SessionInvalid("Session expired.")
        if record.user_type != user_type:
            raise SessionInvalid("Session type mismatch.")
        return record


__all__ = ["AdminContext", "InstitutionContext", "InstitutionKind", "SessionAuthenticator"]
