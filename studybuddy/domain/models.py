"""Pydantic models shared across service and API layers."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from studybuddy.domain.plans import Entitlements


class DomainModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TTSDenialReason(str, Enum):
    NO_SUBSCRIPTION = "no_subscription"
    NOT_PRO = "not_pro"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit_reached"


class PlanLimits(DomainModel):
    chats_per_day: int
    images_per_day: int
    premium_tts: bool = Field(alias="premiumTTS")
    monthly_price: int

    @classmethod
    def from_entitlements(cls, entitlements: Entitlements) -> "PlanLimits":
        return cls(
            chats_per_day=entitlements.chats_per_day,
            images_per_day=entitlements.images_per_day,
            premium_tts=entitlements.premium_voice,
            monthly_price=entitlements.monthly_price,
        )


class SubscriptionModel(DomainModel):
    id: int | None = None
    student_id: int
    plan: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    tts_used: int = 0
    tts_limit: int = 0
    is_active: bool = True


class UpgradeRequestModel(DomainModel):
    id: int
    student_id: int
    requested_plan: str
    status: Literal["pending", "approved", "rejected", "blocked"]
    requested_at: datetime | None = None
    processed_at: datetime | None = None
    processed_by: int | None = None
    rejection_reason: str | None = None


class DailyUsageView(DomainModel):
    usage_date: date
    plan: str
    chats_used: int = 0
    images_used: int = 0
    chats_limit: int
    images_limit: int


class UsageCheck(DomainModel):
    allowed: bool
    current_count: int
    limit: int
    remaining: int
    plan: str
    message_key: str | None = Field(default=None, exclude=True)
    message: str | None = None


class TTSDecision(DomainModel):
    use_premium_tts: bool = Field(alias="usePremiumTTS")
    tts_used: int | None = None
    tts_limit: int | None = None
    tts_remaining: int | None = None
    reason: TTSDenialReason | None = None


class SubscriptionOverview(DomainModel):
    subscription: SubscriptionModel
    pending_request: UpgradeRequestModel | None = None
    latest_request: UpgradeRequestModel | None = None
    student_type: str
    daily_usage: DailyUsageView
    plan_limits: PlanLimits
    status: str
    days_remaining: int | None = None
    tts_usage_percent: float = 0.0


class StudentSummary(DomainModel):
    id: int
    full_name: str
    class_name: str | None = None
    student_type: str
    is_approved: bool
    is_banned: bool
    subscription: SubscriptionModel | None = None
    upgrade_requests: list[UpgradeRequestModel] = Field(default_factory=list)
    pending_request: UpgradeRequestModel | None = None


class RequestListing(DomainModel):
    students: list[StudentSummary]
    pending_requests: list[StudentSummary]


class SweepReport(DomainModel):
    expired_count: int = 0
    failed_count: int = 0


class InstitutionStats(DomainModel):
    id: int
    name: str
    code: str
    type: Literal["school", "coaching"]
    district: str | None = None
    state: str | None = None
    total_students: int = 0
    starter_users: int = 0
    basic_users: int = 0
    pro_users: int = 0
    estimated_revenue: int = 0


class StatsReport(DomainModel):
    schools: list[InstitutionStats]
    coaching_centers: list[InstitutionStats]


__all__ = [
    "DailyUsageView",
    "DomainModel",
    "InstitutionStats",
    "PlanLimits",
    "RequestListing",
    "StatsReport",
    "StudentSummary",
    "SubscriptionModel",
    "SubscriptionOverview",
    "SweepReport",
    "TTSDecision",
    "TTSDenialReason",
    "UpgradeRequestModel",
    "UsageCheck",
]
