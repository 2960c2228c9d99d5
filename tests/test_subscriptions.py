"""Subscription record and premium voice quota."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from factories import create_coaching_center, create_school, create_student, create_subscription
from studybuddy.domain.models import TTSDenialReason
from studybuddy.domain.plans import PlanTier
from studybuddy.services.exceptions import StudentNotFound, ValidationFailed
from studybuddy.services.subscriptions import SubscriptionService
from studybuddy.utils.datetime import as_utc, utc_now

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


async def _school_student(session):
    school = await create_school(session)
    return await create_student(session, school=school)


@pytest.mark.asyncio
async def test_missing_record_reads_as_unsaved_default(session, settings):
    student = await _school_student(session)
    service = SubscriptionService(session, settings)

    subscription = await service.get_subscription(student)

    assert subscription.plan == "basic"
    assert subscription.tts_limit == 0
    assert subscription.is_active is True
    assert subscription.end_date is None
    assert await service.find_subscription(student.id) is None


@pytest.mark.asyncio
async def test_get_student_raises_for_unknown_id(session, settings):
    with pytest.raises(StudentNotFound):
        await SubscriptionService(session, settings).get_student(404)


@pytest.mark.asyncio
async def test_effective_plan_falls_back_when_inactive_or_expired(session, settings):
    center = await create_coaching_center(session)
    student = await create_student(session, coaching_center=center)
    subscription = await create_subscription(
        session, student, plan="pro", end_date=NOW + timedelta(days=3)
    )
    service = SubscriptionService(session, settings)

    assert service.effective_plan(student, subscription, NOW) is PlanTier.PRO
    assert service.effective_plan(student, subscription, NOW + timedelta(days=4)) is PlanTier.STARTER
    subscription.is_active = False
    assert service.effective_plan(student, subscription, NOW) is PlanTier.STARTER
    assert service.effective_plan(student, None, NOW) is PlanTier.STARTER


@pytest.mark.asyncio
async def test_increment_without_record_is_denied(session, settings):
    student = await _school_student(session)

    decision = await SubscriptionService(session, settings).increment_tts(student.id, 10)

    assert decision.use_premium_tts is False
    assert decision.reason is TTSDenialReason.NO_SUBSCRIPTION


@pytest.mark.asyncio
async def test_increment_on_non_pro_plan_is_denied(session, settings):
    student = await _school_student(session)
    await create_subscription(session, student, plan="basic")

    decision = await SubscriptionService(session, settings).increment_tts(student.id, 10)

    assert decision.reason is TTSDenialReason.NOT_PRO


@pytest.mark.asyncio
async def test_increment_on_expired_pro_is_denied(session, settings):
    student = await _school_student(session)
    subscription = await create_subscription(
        session, student, plan="pro", end_date=utc_now() - timedelta(hours=1)
    )

    decision = await SubscriptionService(session, settings).increment_tts(student.id, 10)

    assert decision.reason is TTSDenialReason.EXPIRED
    assert subscription.tts_used == 0


@pytest.mark.asyncio
async def test_increment_debits_whole_utterance(session, settings):
    student = await _school_student(session)
    subscription = await create_subscription(
        session, student, plan="pro", end_date=utc_now() + timedelta(days=10), tts_used=89_990
    )
    service = SubscriptionService(session, settings)

    denied = await service.increment_tts(student.id, 20)
    assert denied.use_premium_tts is False
    assert denied.reason is TTSDenialReason.LIMIT_REACHED
    assert (denied.tts_used, denied.tts_limit, denied.tts_remaining) == (89_990, 90_000, 10)
    assert subscription.tts_used == 89_990

    allowed = await service.increment_tts(student.id, 10)
    assert allowed.use_premium_tts is True
    assert allowed.tts_used == 90_000
    assert allowed.tts_remaining == 0
    assert allowed.reason is None


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, -5])
async def test_increment_rejects_non_positive_counts(session, settings, count):
    student = await _school_student(session)
    with pytest.raises(ValidationFailed) as exc_info:
        await SubscriptionService(session, settings).increment_tts(student.id, count)
    assert exc_info.value.code == "tts.invalid_count"


@pytest.mark.asyncio
async def test_activate_pro_resets_voice_quota(session, settings):
    student = await _school_student(session)
    await create_subscription(session, student, plan="pro", tts_used=50_000)

    subscription = await SubscriptionService(session, settings).activate_plan(
        student, PlanTier.PRO, NOW
    )

    assert subscription.plan == "pro"
    assert subscription.tts_used == 0
    assert subscription.tts_limit == 90_000
    assert as_utc(subscription.start_date) == NOW
    assert as_utc(subscription.end_date) == NOW + timedelta(days=30)
    assert subscription.is_active is True


@pytest.mark.asyncio
async def test_activate_creates_record_when_missing(session, settings):
    center = await create_coaching_center(session)
    student = await create_student(session, coaching_center=center)
    service = SubscriptionService(session, settings)

    await service.activate_plan(student, PlanTier.BASIC, NOW)

    stored = await service.find_subscription(student.id)
    assert stored is not None
    assert stored.plan == "basic"
    assert stored.tts_limit == 0
    assert as_utc(stored.end_date) == NOW + timedelta(days=30)


@pytest.mark.asyncio
async def test_downgrade_is_idempotent(session, settings):
    center = await create_coaching_center(session)
    student = await create_student(session, coaching_center=center)
    await create_subscription(session, student, plan="pro", end_date=NOW, tts_used=120)
    service = SubscriptionService(session, settings)

    first = await service.cancel_or_downgrade(student)
    second = await service.cancel_or_downgrade(student)

    assert first is second
    assert second.plan == "starter"
    assert second.end_date is None
    assert second.is_active is True
    assert second.tts_used == 120
