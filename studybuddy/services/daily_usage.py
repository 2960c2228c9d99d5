"""Per-day chat and image counters gated by the plan catalog."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from studybuddy.config import AppSettings, get_settings
from studybuddy.db.models.core import DailyUsage, Student
from studybuddy.db.upsert import insert_or_fetch
from studybuddy.domain.models import DailyUsageView, UsageCheck
from studybuddy.domain.plans import UsageType, get_entitlements
from studybuddy.logging import logger
from studybuddy.services.subscriptions import SubscriptionService
from studybuddy.utils.datetime import local_date

_COUNTER_FIELDS = {
    UsageType.CHAT: "chats_used",
    UsageType.IMAGE: "images_used",
}


class DailyUsageCounter:
    def __init__(self, session: AsyncSession, settings: AppSettings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.subscriptions = SubscriptionService(session, self.settings)

    def usage_date(self, now: datetime | None = None) -> date:
        return local_date(self.settings.subscriptions.usage_timezone, now)

    async def check_and_increment(
        self,
        student: Student,
        usage_type: UsageType,
        *,
        now: datetime | None = None,
    ) -> UsageCheck:
        """Consume one unit if today's count is below the plan cap.

        The increment is a single conditional UPDATE so concurrent callers
        cannot push the counter past the cap.
        """

        subscription = await self.subscriptions.find_subscription(student.id)
        plan = self.subscriptions.effective_plan(student, subscription, now)
        limit = get_entitlements(plan).limit_for(usage_type)
        usage_date = self.usage_date(now)
        field = _COUNTER_FIELDS[usage_type]
        column = getattr(DailyUsage, field)

        usage = await self._get_or_create(student.id, usage_date)

        stmt = (
            update(DailyUsage)
            .where(DailyUsage.id == usage.id, column < limit)
            .values({field: column + 1})
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        current = await self._read_counter(usage.id, field)
        set_committed_value(usage, field, current)

        if result.rowcount == 0:
            logger.info(
                "daily_usage_limit_reached",
                student_id=student.id,
                usage_type=usage_type.value,
                count=current,
                limit=limit,
                plan=plan.value,
            )
            return UsageCheck(
                allowed=False,
                current_count=current,
                limit=limit,
                remaining=0,
                plan=plan.value,
                message_key=f"usage.limit_reached.{usage_type.value}",
            )

        return UsageCheck(
            allowed=True,
            current_count=current,
            limit=limit,
            remaining=max(0, limit - current),
            plan=plan.value,
        )

    async def snapshot(self, student: Student, *, now: datetime | None = None) -> DailyUsageView:
        """Today's counters without creating or changing anything."""

        subscription = await self.subscriptions.find_subscription(student.id)
        plan = self.subscriptions.effective_plan(student, subscription, now)
        entitlements = get_entitlements(plan)
        usage_date = self.usage_date(now)
        usage = await self._find(student.id, usage_date)
        return DailyUsageView(
            usage_date=usage_date,
            plan=plan.value,
            chats_used=usage.chats_used if usage else 0,
            images_used=usage.images_used if usage else 0,
            chats_limit=entitlements.chats_per_day,
            images_limit=entitlements.images_per_day,
        )

    async def _find(self, student_id: int, usage_date: date) -> DailyUsage | None:
        stmt = (
            select(DailyUsage)
            .where(
                DailyUsage.student_id == student_id,
                DailyUsage.usage_date == usage_date,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_create(self, student_id: int, usage_date: date) -> DailyUsage:
        usage = await self._find(student_id, usage_date)
        if usage is not None:
            return usage
        return await insert_or_fetch(
            self.session,
            DailyUsage(
                student_id=student_id,
                usage_date=usage_date,
                chats_used=0,
                images_used=0,
            ),
            lambda: self._find(student_id, usage_date),
        )

    async def _read_counter(self, usage_id: int, field: str) -> int:
        stmt = select(getattr(DailyUsage, field)).where(DailyUsage.id == usage_id)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())


__all__ = ["DailyUsageCounter"]
