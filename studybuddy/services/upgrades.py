"""Student upgrade requests and the institution actions that settle them.

A request is ``pending`` until an institution approves, rejects or blocks it;
those three states are terminal. The ``pending_key`` column holds the
student id only while a request is pending, so the unique constraint on it
keeps a single pending request per student even under concurrent submits.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studybuddy.config import AppSettings, get_settings
from studybuddy.db.models.core import Student, UpgradeRequest
from studybuddy.domain.models import (
    RequestListing,
    StudentSummary,
    SubscriptionModel,
    UpgradeRequestModel,
)
from studybuddy.domain.plans import PlanTier, StudentType, upgrade_targets
from studybuddy.logging import logger
from studybuddy.services.auth import InstitutionContext
from studybuddy.services.exceptions import (
    NotStudentOwner,
    PendingRequestExists,
    RequestNotFound,
    UpgradeNotAllowed,
)
from studybuddy.services.subscriptions import SubscriptionService
from studybuddy.utils.datetime import utc_now

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
BLOCKED = "blocked"

DEFAULT_REJECTION_REASON = "No reason provided"


class UpgradeRequestService:
    def __init__(self, session: AsyncSession, settings: AppSettings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.subscriptions = SubscriptionService(session, self.settings)

    async def find_pending(self, student_id: int, *, for_update: bool = False) -> UpgradeRequest | None:
        stmt = select(UpgradeRequest).where(
            UpgradeRequest.student_id == student_id,
            UpgradeRequest.status == PENDING,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def latest_request(self, student_id: int) -> UpgradeRequest | None:
        stmt = (
            select(UpgradeRequest)
            .where(UpgradeRequest.student_id == student_id)
            .order_by(UpgradeRequest.requested_at.desc(), UpgradeRequest.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def request_upgrade(
        self, student: Student, requested_plan: str | PlanTier | None = None
    ) -> UpgradeRequest:
        target = PlanTier.from_request(requested_plan or PlanTier.PRO)

        if await self.find_pending(student.id) is not None:
            raise PendingRequestExists("Student already has a pending upgrade request.")

        student_type = StudentType.parse(student.student_type)
        if target not in upgrade_targets(student_type):
            code = (
                "upgrade.school_pro_only"
                if student_type is StudentType.SCHOOL
                else "upgrade.invalid_target"
            )
            raise UpgradeNotAllowed(
                f"{student_type.value} cannot request {target.value}.",
                code=code,
                plan=target.value,
            )

        subscription = await self.subscriptions.find_subscription(student.id)
        current = self.subscriptions.effective_plan(student, subscription)
        if target is current:
            raise UpgradeNotAllowed(
                f"Already on {current.value}.", code="upgrade.already_on_plan", plan=current.value
            )
        if target.rank < current.rank:
            raise UpgradeNotAllowed(
                f"{target.value} is below {current.value}.",
                code="upgrade.not_an_upgrade",
                plan=current.value,
            )

        request = UpgradeRequest(
            student_id=student.id,
            requested_plan=target.value,
            status=PENDING,
            pending_key=student.id,
            requested_at=utc_now(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(request)
        except IntegrityError as exc:
            # Only a concurrent pending request maps to a user error.
            if await self.find_pending(student.id) is None:
                logger.error("upgrade_request_insert_failed", student_id=student.id, error=str(exc))
                raise
            raise PendingRequestExists("Student already has a pending upgrade request.") from exc

        logger.info(
            "upgrade_request_created",
            student_id=student.id,
            request_id=request.id,
            requested_plan=target.value,
            current_plan=current.value,
        )
        return request

    async def list_requests(self, institution: InstitutionContext) -> RequestListing:
        membership = getattr(Student, institution.membership_field)
        stmt = (
            select(Student)
            .options(selectinload(Student.subscription), selectinload(Student.upgrade_requests))
            .where(membership == institution.id, Student.is_approved.is_(True))
            .order_by(Student.id)
            .execution_options(populate_existing=True)
        )
        students = list((await self.session.execute(stmt)).scalars())
        summaries = [self._summarize(student) for student in students]
        return RequestListing(
            students=summaries,
            pending_requests=[item for item in summaries if item.pending_request is not None],
        )

    async def approve_request(
        self, institution: InstitutionContext, request_id: int, *, now: datetime | None = None
    ) -> UpgradeRequest:
        request, student = await self._load_for_processing(institution, request_id)
        now = now or utc_now()
        plan = PlanTier.parse(request.requested_plan)
        self._close(request, APPROVED, institution, now)
        await self.session.flush()
        await self.subscriptions.activate_plan(student, plan, now)
        logger.info(
            "upgrade_request_approved",
            request_id=request.id,
            student_id=student.id,
            plan=plan.value,
            institution_id=institution.id,
            institution_kind=institution.kind,
        )
        return request

    async def reject_request(
        self,
        institution: InstitutionContext,
        request_id: int,
        reason: str | None = None,
    ) -> UpgradeRequest:
        request, student = await self._load_for_processing(institution, request_id)
        self._close(request, REJECTED, institution, utc_now())
        request.rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
        await self.session.flush()
        logger.info(
            "upgrade_request_rejected",
            request_id=request.id,
            student_id=student.id,
            institution_id=institution.id,
        )
        return request

    async def block_student(self, institution: InstitutionContext, student_id: int) -> int:
        """Block every pending request and force the student back to base plan."""

        student = await self._owned_student(institution, student_id)
        now = utc_now()
        stmt = (
            select(UpgradeRequest)
            .where(UpgradeRequest.student_id == student.id, UpgradeRequest.status == PENDING)
            .with_for_update()
        )
        pending = list((await self.session.execute(stmt)).scalars())
        for request in pending:
            self._close(request, BLOCKED, institution, now)
        await self.session.flush()
        await self.subscriptions.cancel_or_downgrade(student)
        logger.info(
            "student_blocked",
            student_id=student.id,
            institution_id=institution.id,
            blocked_requests=len(pending),
        )
        return len(pending)

    async def cancel_pro(self, institution: InstitutionContext, student_id: int) -> None:
        student = await self._owned_student(institution, student_id)
        await self.subscriptions.cancel_or_downgrade(student)
        logger.info("subscription_cancelled", student_id=student.id, institution_id=institution.id)

    # Internal helpers -------------------------------------------------

    async def _load_for_processing(
        self, institution: InstitutionContext, request_id: int
    ) -> tuple[UpgradeRequest, Student]:
        stmt = select(UpgradeRequest).where(UpgradeRequest.id == request_id).with_for_update()
        request = (await self.session.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise RequestNotFound(f"Upgrade request {request_id} not found.")
        student = await self.session.get(Student, request.student_id)
        if student is None or not institution.owns(student):
            logger.warning(
                "upgrade_request_not_owned",
                request_id=request_id,
                institution_id=institution.id,
                institution_kind=institution.kind,
            )
            raise NotStudentOwner("Request belongs to another institution.")
        if request.status != PENDING:
            raise RequestNotFound(
                f"Upgrade request {request_id} already processed.",
                code="upgrade.already_processed",
            )
        return request, student

    async def _owned_student(self, institution: InstitutionContext, student_id: int) -> Student:
        student = await self.subscriptions.get_student(student_id)
        if not institution.owns(student):
            logger.warning(
                "student_not_owned",
                student_id=student_id,
                institution_id=institution.id,
                institution_kind=institution.kind,
            )
            raise NotStudentOwner("Student not found in your institution.")
        return student

    @staticmethod
    def _close(
        request: UpgradeRequest,
        status: str,
        institution: InstitutionContext,
        now: datetime,
    ) -> None:
        request.status = status
        request.pending_key = None
        request.processed_at = now
        request.processed_by = institution.id

    @staticmethod
    def _summarize(student: Student) -> StudentSummary:
        requests = [UpgradeRequestModel.model_validate(item) for item in student.upgrade_requests]
        pending = next((item for item in requests if item.status == PENDING), None)
        subscription = (
            SubscriptionModel.model_validate(student.subscription)
            if student.subscription is not None
            else None
        )
        return StudentSummary(
            id=student.id,
            full_name=student.full_name,
            class_name=student.class_name,
            student_type=student.student_type,
            is_approved=student.is_approved,
            is_banned=student.is_banned,
            subscription=subscription,
            upgrade_requests=requests,
            pending_request=pending,
        )


__all__ = [
    "APPROVED",
    "BLOCKED",
    "DEFAULT_REJECTION_REASON",
    "PENDING",
    "REJECTED",
    "UpgradeRequestService",
]
