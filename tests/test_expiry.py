"""Expiry sweep of lapsed pro subscriptions."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from factories import create_coaching_center, create_school, create_student, create_subscription
from studybuddy.db.models.core import Subscription
from studybuddy.services.expiry import ExpirySweeper

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


async def _plans(session_factory) -> dict[int, tuple[str, datetime | None]]:
    async with session_factory() as fresh:
        rows = (await fresh.execute(select(Subscription))).scalars().all()
        return {row.student_id: (row.plan, row.end_date) for row in rows}


@pytest.mark.asyncio
async def test_sweep_downgrades_only_lapsed_pro(session, session_factory, settings):
    school = await create_school(session)
    center = await create_coaching_center(session)
    lapsed_school = await create_student(session, school=school)
    lapsed_coaching = await create_student(session, coaching_center=center)
    active = await create_student(session, school=school)
    lapsed_basic = await create_student(session, coaching_center=center)
    await create_subscription(session, lapsed_school, plan="pro", end_date=NOW - timedelta(days=1))
    await create_subscription(session, lapsed_coaching, plan="pro", end_date=NOW - timedelta(seconds=1))
    await create_subscription(session, active, plan="pro", end_date=NOW + timedelta(days=1))
    await create_subscription(session, lapsed_basic, plan="basic", end_date=NOW - timedelta(days=1))
    await session.commit()

    sweeper = ExpirySweeper(session_factory, settings)
    report = await sweeper.sweep(NOW)

    assert report.expired_count == 2
    assert report.failed_count == 0
    plans = await _plans(session_factory)
    assert plans[lapsed_school.id] == ("basic", None)
    assert plans[lapsed_coaching.id] == ("starter", None)
    assert plans[active.id][0] == "pro"
    assert plans[lapsed_basic.id][0] == "basic"

    second = await sweeper.sweep(NOW)
    assert second.expired_count == 0


@pytest.mark.asyncio
async def test_sweep_isolates_failing_records(session, session_factory, settings):
    school = await create_school(session)
    student = await create_student(session, school=school)
    await create_subscription(session, student, plan="pro", end_date=NOW - timedelta(days=1))
    session.add(
        Subscription(
            student_id=9_999,
            plan="pro",
            end_date=NOW - timedelta(days=1),
            tts_used=0,
            tts_limit=90_000,
            is_active=True,
        )
    )
    await session.commit()

    report = await ExpirySweeper(session_factory, settings).sweep(NOW)

    assert report.expired_count == 1
    assert report.failed_count == 1
    plans = await _plans(session_factory)
    assert plans[student.id][0] == "basic"
    assert plans[9_999][0] == "pro"


@pytest.mark.asyncio
async def test_sweep_with_nothing_to_do(session_factory, settings):
    report = await ExpirySweeper(session_factory, settings).sweep(NOW)
    assert (report.expired_count, report.failed_count) == (0, 0)


@pytest.mark.asyncio
async def test_run_forever_survives_failed_sweeps(session_factory, settings, monkeypatch):
    sweeper = ExpirySweeper(session_factory, settings)
    calls = []

    async def flaky_sweep(now=None):
        calls.append(now)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        raise asyncio.CancelledError

    monkeypatch.setattr(sweeper, "sweep", flaky_sweep)

    with pytest.raises(asyncio.CancelledError):
        await sweeper.run_forever(0)
    assert len(calls) == 2
