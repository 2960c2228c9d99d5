"""Aggregated subscription view for the student dashboard."""

from __future__ import annotations

import math
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.config import AppSettings, get_settings
from studybuddy.db.models.core import Student, Subscription, UpgradeRequest
from studybuddy.domain.models import (
    PlanLimits,
    SubscriptionModel,
    SubscriptionOverview,
    UpgradeRequestModel,
)
from studybuddy.domain.plans import PlanTier, StudentType, get_entitlements
from studybuddy.services.daily_usage import DailyUsageCounter
from studybuddy.services.subscriptions import SubscriptionService
from studybuddy.services.upgrades import UpgradeRequestService
from studybuddy.utils.datetime import as_utc, utc_now


async def build_overview(
    session: AsyncSession,
    student: Student,
    settings: AppSettings | None = None,
    *,
    now: datetime | None = None,
) -> SubscriptionOverview:
    settings = settings or get_settings()
    now = now or utc_now()
    subscriptions = SubscriptionService(session, settings)
    upgrades = UpgradeRequestService(session, settings)
    counter = DailyUsageCounter(session, settings)

    subscription = await subscriptions.get_subscription(student)
    pending = await upgrades.find_pending(student.id)
    latest = await upgrades.latest_request(student.id)
    daily_usage = await counter.snapshot(student, now=now)
    plan = subscriptions.effective_plan(student, subscription, now)

    return SubscriptionOverview(
        subscription=SubscriptionModel.model_validate(subscription),
        pending_request=UpgradeRequestModel.model_validate(pending) if pending else None,
        latest_request=UpgradeRequestModel.model_validate(latest) if latest else None,
        student_type=StudentType.parse(student.student_type).value,
        daily_usage=daily_usage,
        plan_limits=PlanLimits.from_entitlements(get_entitlements(plan)),
        status=subscription_status(subscription, latest, now),
        days_remaining=days_remaining(subscription, now),
        tts_usage_percent=tts_usage_percent(subscription),
    )


def subscription_status(
    subscription: Subscription,
    latest_request: UpgradeRequest | None,
    now: datetime | None = None,
) -> str:
    """Short machine-readable state shown next to the plan badge."""

    if latest_request is not None and latest_request.status in {"blocked", "pending"}:
        return "blocked" if latest_request.status == "blocked" else "pending_approval"

    plan = PlanTier.parse(subscription.plan)
    if plan is PlanTier.PRO:
        if SubscriptionService.is_expired(subscription, now):
            return "expired"
        if subscription.tts_used >= subscription.tts_limit:
            return "voice_limit_reached"
        return "active_pro"
    return plan.value


def days_remaining(subscription: Subscription, now: datetime | None = None) -> int | None:
    end_date = as_utc(subscription.end_date)
    if end_date is None or PlanTier.parse(subscription.plan) is not PlanTier.PRO:
        return None
    seconds = (end_date - (now or utc_now())).total_seconds()
    return max(0, math.ceil(seconds / 86_400))


def tts_usage_percent(subscription: Subscription) -> float:
    if not subscription.tts_limit:
        return 0.0
    return min(100.0, subscription.tts_used / subscription.tts_limit * 100)


__all__ = ["build_overview", "days_remaining", "subscription_status", "tts_usage_percent"]
