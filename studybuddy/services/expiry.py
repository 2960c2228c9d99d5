"""Reconcile lapsed Pro subscriptions back to the student's base plan."""

from __future__ import annotations

import asyncio
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studybuddy.config import AppSettings, get_settings
from studybuddy.db.models.core import Student, Subscription
from studybuddy.domain.models import SweepReport
from studybuddy.domain.plans import PlanTier
from studybuddy.logging import logger
from studybuddy.services.subscriptions import SubscriptionService
from studybuddy.utils.datetime import utc_now


class ExpirySweeper:
    """Downgrades every ``pro`` subscription whose ``end_date`` has passed.

    Each record is handled in its own session and transaction so that one
    failure never blocks the rest of the sweep.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: AppSettings | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def sweep(self, now: datetime | None = None) -> SweepReport:
        now = now or utc_now()
        async with self.session_factory() as session:
            candidate_ids = list((await session.execute(self._expired_ids(now))).scalars())

        report = SweepReport()
        for subscription_id in candidate_ids:
            try:
                swept = await self._downgrade_one(subscription_id, now)
            except Exception:
                report.failed_count += 1
                logger.exception("expiry_sweep_record_failed", subscription_id=subscription_id)
                continue
            if swept:
                report.expired_count += 1

        logger.info(
            "expiry_sweep_finished",
            candidates=len(candidate_ids),
            expired_count=report.expired_count,
            failed_count=report.failed_count,
        )
        return report

    async def run_forever(self, interval_seconds: int) -> None:
        while True:
            try:
                await self.sweep()
            except Exception:
                logger.exception("expiry_sweep_failed")
            await asyncio.sleep(interval_seconds)

    @staticmethod
    def _expired_ids(now: datetime):
        return select(Subscription.id).where(
            Subscription.plan == PlanTier.PRO.value,
            Subscription.end_date.is_not(None),
            Subscription.end_date < now,
        )

    async def _downgrade_one(self, subscription_id: int, now: datetime) -> bool:
        async with self.session_factory() as session:
            try:
                stmt = (
                    select(Subscription)
                    .where(Subscription.id == subscription_id)
                    .with_for_update()
                )
                subscription = (await session.execute(stmt)).scalar_one_or_none()
                # Re-check under the lock: an approval may have landed since the scan.
                if (
                    subscription is None
                    or PlanTier.parse(subscription.plan) is not PlanTier.PRO
                    or not SubscriptionService.is_expired(subscription, now)
                ):
                    await session.rollback()
                    return False

                student = await session.get(Student, subscription.student_id)
                if student is None:
                    raise LookupError(f"Student {subscription.student_id} missing.")
                service = SubscriptionService(session, self.settings)
                await service.cancel_or_downgrade(student, subscription)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.info(
            "subscription_expired",
            subscription_id=subscription_id,
            student_id=subscription.student_id,
            plan=subscription.plan,
        )
        return True


__all__ = ["ExpirySweeper"]
