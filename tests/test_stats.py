"""Per-institution plan distribution for super admins."""

from __future__ import annotations

from datetime import timedelta

import pytest

from factories import create_coaching_center, create_school, create_student, create_subscription
from studybuddy.services.stats import InstitutionStatsService
from studybuddy.utils.datetime import utc_now


@pytest.mark.asyncio
async def test_collect_counts_plans_and_revenue(session):
    school = await create_school(session, district="Patna", state="Bihar")
    center = await create_coaching_center(session)
    later = utc_now() + timedelta(days=10)

    pro_student = await create_student(session, school=school)
    basic_student = await create_student(session, school=school)
    await create_student(session, school=school)
    await create_student(session, school=school, is_approved=False)
    await create_subscription(session, pro_student, plan="pro", end_date=later)
    await create_subscription(session, basic_student, plan="basic")

    starter_student = await create_student(session, coaching_center=center)
    await create_subscription(session, starter_student, plan="starter")

    report = await InstitutionStatsService(session).collect()

    [school_stats] = report.schools
    assert school_stats.type == "school"
    assert school_stats.total_students == 3
    assert (school_stats.starter_users, school_stats.basic_users, school_stats.pro_users) == (0, 1, 1)
    assert school_stats.estimated_revenue == 199 + 99
    assert school_stats.district == "Patna"

    [center_stats] = report.coaching_centers
    assert center_stats.type == "coaching"
    assert center_stats.starter_users == 1
    assert center_stats.estimated_revenue == 50

    payload = report.model_dump(by_alias=True)
    assert payload["coachingCenters"][0]["estimatedRevenue"] == 50
