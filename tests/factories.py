"""Row builders shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timedelta

from studybuddy.db.models.core import (
    CoachingCenter,
    School,
    SessionToken,
    Student,
    Subscription,
    UpgradeRequest,
)
from studybuddy.utils.datetime import utc_now


async def create_school(session, *, code: str = "SCH001", **overrides) -> School:
    school = School(name=overrides.pop("name", f"School {code}"), code=code, **overrides)
    session.add(school)
    await session.flush()
    return school


async def create_coaching_center(session, *, code: str = "CC001", **overrides) -> CoachingCenter:
    center = CoachingCenter(name=overrides.pop("name", f"Centre {code}"), code=code, **overrides)
    session.add(center)
    await session.flush()
    return center


async def create_student(
    session,
    *,
    school: School | None = None,
    coaching_center: CoachingCenter | None = None,
    **overrides,
) -> Student:
    student_type = "coaching_student" if coaching_center is not None else "school_student"
    student = Student(
        full_name=overrides.pop("full_name", "Asha Verma"),
        class_name=overrides.pop("class_name", "10"),
        student_type=overrides.pop("student_type", student_type),
        school_id=school.id if school is not None else None,
        coaching_center_id=coaching_center.id if coaching_center is not None else None,
        is_approved=overrides.pop("is_approved", True),
        **overrides,
    )
    session.add(student)
    await session.flush()
    return student


async def create_subscription(
    session,
    student: Student,
    *,
    plan: str = "pro",
    end_date: datetime | None = None,
    tts_used: int = 0,
    tts_limit: int | None = None,
    is_active: bool = True,
) -> Subscription:
    if tts_limit is None:
        tts_limit = 90_000 if plan == "pro" else 0
    subscription = Subscription(
        student_id=student.id,
        plan=plan,
        start_date=utc_now() - timedelta(days=1),
        end_date=end_date,
        tts_used=tts_used,
        tts_limit=tts_limit,
        is_active=is_active,
    )
    session.add(subscription)
    await session.flush()
    return subscription


async def create_request(
    session, student: Student, *, plan: str = "pro", status: str = "pending"
) -> UpgradeRequest:
    request = UpgradeRequest(
        student_id=student.id,
        requested_plan=plan,
        status=status,
        pending_key=student.id if status == "pending" else None,
    )
    session.add(request)
    await session.flush()
    return request


async def create_token(
    session,
    *,
    user_id: int,
    user_type: str,
    token: str = "session-token",
    expires_at: datetime | None = None,
    is_revoked: bool = False,
) -> SessionToken:
    record = SessionToken(
        token=token,
        user_id=user_id,
        user_type=user_type,
        expires_at=expires_at or utc_now() + timedelta(hours=1),
        is_revoked=is_revoked,
    )
    session.add(record)
    await session.flush()
    return record
