"""SQLAlchemy models for institutions, students and their entitlements."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studybuddy.db.base import Base
from studybuddy.utils.datetime import utc_now


class School(Base):
    __tablename__ = "schools"
    __table_args__ = (UniqueConstraint("code", name="uq_schools_code"),)

    name: Mapped[str] = mapped_column(String(191), nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    district: Mapped[str | None] = mapped_column(String(64))
    state: Mapped[str | None] = mapped_column(String(64))
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fee_paid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    students: Mapped[list["Student"]] = relationship(back_populates="school")


class CoachingCenter(Base):
    __tablename__ = "coaching_centers"
    __table_args__ = (UniqueConstraint("code", name="uq_coaching_centers_code"),)

    name: Mapped[str] = mapped_column(String(191), nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    district: Mapped[str | None] = mapped_column(String(64))
    state: Mapped[str | None] = mapped_column(String(64))
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    students: Mapped[list["Student"]] = relationship(back_populates="coaching_center")


class Student(Base):
    __tablename__ = "students"

    full_name: Mapped[str] = mapped_column(String(128), nullable=False)
    class_name: Mapped[str | None] = mapped_column("class", String(16))
    student_type: Mapped[str] = mapped_column(
        Enum("school_student", "coaching_student", name="student_type"),
        default="school_student",
        nullable=False,
    )
    school_id: Mapped[int | None] = mapped_column(ForeignKey("schools.id", ondelete="SET NULL"))
    coaching_center_id: Mapped[int | None] = mapped_column(
        ForeignKey("coaching_centers.id", ondelete="SET NULL")
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    school: Mapped[School | None] = relationship(back_populates="students")
    coaching_center: Mapped[CoachingCenter | None] = relationship(back_populates="students")
    subscription: Mapped["Subscription | None"] = relationship(
        back_populates="student", uselist=False
    )
    upgrade_requests: Mapped[list["UpgradeRequest"]] = relationship(back_populates="student")


class SessionToken(Base):
    __tablename__ = "session_tokens"
    __table_args__ = (UniqueConstraint("token", name="uq_session_tokens_token"),)

    token: Mapped[str] = mapped_column(String(128), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_type: Mapped[str] = mapped_column(
        Enum("school", "coaching", "admin", "student", name="session_user_type"),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("student_id", name="uq_subscriptions_student"),)

    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"))
    # Free-form so that a value the catalog does not know can still be read.
    plan: Mapped[str] = mapped_column(String(16), default="basic", nullable=False)
    start_date: Mapped[datetime | None] = mapped_column(DateTime)
    end_date: Mapped[datetime | None] = mapped_column(DateTime)
    tts_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tts_limit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    student: Mapped[Student] = relationship(back_populates="subscription")


class DailyUsage(Base):
    __tablename__ = "daily_usage"
    __table_args__ = (
        UniqueConstraint("student_id", "usage_date", name="uq_daily_usage_student_date"),
    )

    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"))
    usage_date: Mapped[date] = mapped_column(Date, nullable=False)
    chats_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    images_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)


class UpgradeRequest(Base):
    __tablename__ = "upgrade_requests"
    __table_args__ = (UniqueConstraint("pending_key", name="uq_upgrade_requests_pending"),)

    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"))
    requested_plan: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum("pending", "approved", "rejected", "blocked", name="upgrade_request_status"),
        default="pending",
        nullable=False,
    )
    # Mirrors student_id while pending, NULL once terminal: one pending row per student.
    pending_key: Mapped[int | None] = mapped_column(Integer)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime)
    processed_by: Mapped[int | None] = mapped_column(Integer)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    student: Mapped[Student] = relationship(back_populates="upgrade_requests")


__all__ = [
    "CoachingCenter",
    "DailyUsage",
    "School",
    "SessionToken",
    "Student",
    "Subscription",
    "UpgradeRequest",
]
