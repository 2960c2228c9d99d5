"""Per-student subscription record: plan state and premium voice quota."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.config import AppSettings, get_settings
from studybuddy.db.models.core import Student, Subscription
from studybuddy.db.upsert import insert_or_fetch
from studybuddy.domain.models import TTSDecision, TTSDenialReason
from studybuddy.domain.plans import PlanTier, base_plan_for
from studybuddy.logging import logger
from studybuddy.services.exceptions import StudentNotFound, ValidationFailed
from studybuddy.utils.datetime import as_utc, utc_now


class SubscriptionService:
    def __init__(self, session: AsyncSession, settings: AppSettings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    async def get_student(self, student_id: int) -> Student:
        student = await self.session.get(Student, student_id)
        if student is None:
            raise StudentNotFound(f"Student {student_id} not found.", student_id=student_id)
        return student

    async def find_subscription(
        self, student_id: int, *, for_update: bool = False
    ) -> Subscription | None:
        stmt = select(Subscription).where(Subscription.student_id == student_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_subscription(self, student: Student) -> Subscription:
        """Stored record, or an unsaved default that is persisted on first mutation."""

        subscription = await self.find_subscription(student.id)
        if subscription is None:
            return self._default_subscription(student)
        return subscription

    def effective_plan(
        self,
        student: Student,
        subscription: Subscription | None,
        now: datetime | None = None,
    ) -> PlanTier:
        base = base_plan_for(student.student_type)
        if subscription is None or not subscription.is_active:
            return base
        if self.is_expired(subscription, now):
            return base
        return PlanTier.parse(subscription.plan)

    @staticmethod
    def is_expired(subscription: Subscription, now: datetime | None = None) -> bool:
        end_date = as_utc(subscription.end_date)
        return end_date is not None and end_date < (now or utc_now())

    async def increment_tts(self, student_id: int, character_count: int) -> TTSDecision:
        """Debit premium voice characters, all-or-nothing per utterance."""

        if character_count is None or character_count <= 0:
            raise ValidationFailed(
                "Character count must be positive.",
                code="tts.invalid_count",
                character_count=character_count,
            )

        subscription = await self.find_subscription(student_id, for_update=True)
        if subscription is None:
            return TTSDecision(use_premium_tts=False, reason=TTSDenialReason.NO_SUBSCRIPTION)

        is_pro = PlanTier.parse(subscription.plan) is PlanTier.PRO and subscription.is_active
        if not is_pro:
            return TTSDecision(use_premium_tts=False, reason=TTSDenialReason.NOT_PRO)
        if self.is_expired(subscription):
            return TTSDecision(use_premium_tts=False, reason=TTSDenialReason.EXPIRED)

        used, limit = subscription.tts_used, subscription.tts_limit
        if used + character_count > limit:
            logger.info(
                "tts_limit_reached",
                student_id=student_id,
                tts_used=used,
                tts_limit=limit,
                requested=character_count,
            )
            return TTSDecision(
                use_premium_tts=False,
                tts_used=used,
                tts_limit=limit,
                tts_remaining=max(0, limit - used),
                reason=TTSDenialReason.LIMIT_REACHED,
            )

        subscription.tts_used = used + character_count
        subscription.updated_at = utc_now()
        await self.session.flush()
        return TTSDecision(
            use_premium_tts=True,
            tts_used=subscription.tts_used,
            tts_limit=limit,
            tts_remaining=limit - subscription.tts_used,
        )

    async def activate_plan(
        self, student: Student, plan: PlanTier, now: datetime | None = None
    ) -> Subscription:
        """Start a fixed activation window for ``plan``."""

        now = now or utc_now()
        subscription = await self._lock_or_create(student)
        subscription.plan = plan.value
        subscription.start_date = now
        subscription.end_date = now + timedelta(days=self.settings.subscriptions.activation_days)
        subscription.is_active = True
        if plan is PlanTier.PRO:
            subscription.tts_used = 0
            subscription.tts_limit = self.settings.subscriptions.pro_tts_char_limit
        else:
            subscription.tts_limit = 0
        subscription.updated_at = now
        await self.session.flush()
        logger.info(
            "subscription_activated",
            student_id=student.id,
            plan=plan.value,
            end_date=subscription.end_date.isoformat(),
        )
        return subscription

    async def cancel_or_downgrade(
        self, student: Student, subscription: Subscription | None = None
    ) -> Subscription:
        """Return the student to their base plan with no expiry."""

        if subscription is None:
            subscription = await self._lock_or_create(student)
        base = base_plan_for(student.student_type)
        previous = subscription.plan
        subscription.plan = base.value
        subscription.end_date = None
        subscription.is_active = True
        subscription.updated_at = utc_now()
        await self.session.flush()
        logger.info(
            "subscription_downgraded",
            student_id=student.id,
            previous_plan=previous,
            plan=base.value,
        )
        return subscription

    # Internal helpers -------------------------------------------------

    def _default_subscription(self, student: Student) -> Subscription:
        plan = base_plan_for(student.student_type)
        return Subscription(
            student_id=student.id,
            plan=plan.value,
            start_date=None,
            end_date=None,
            tts_used=0,
            tts_limit=self._tts_limit_for(plan),
            is_active=True,
        )

    def _tts_limit_for(self, plan: PlanTier) -> int:
        if plan is PlanTier.PRO:
            return self.settings.subscriptions.pro_tts_char_limit
        return 0

    async def _lock_or_create(self, student: Student) -> Subscription:
        subscription = await self.find_subscription(student.id, for_update=True)
        if subscription is not None:
            return subscription
        created = self._default_subscription(student)
        created.start_date = utc_now()
        return await insert_or_fetch(
            self.session,
            created,
            lambda: self.find_subscription(student.id, for_update=True),
        )


__all__ = ["SubscriptionService"]
