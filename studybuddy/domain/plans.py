"""Static plan catalog and the student-type rules built on it."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from studybuddy.logging import logger
from studybuddy.services.exceptions import ValidationFailed

PRO_TTS_CHAR_LIMIT = 90_000


class PlanTier(str, Enum):
    STARTER = "starter"
    BASIC = "basic"
    PRO = "pro"

    @property
    def rank(self) -> int:
        return _PLAN_ORDER.index(self)

    @classmethod
    def parse(cls, value: "str | PlanTier | None") -> "PlanTier":
        """Lenient lookup for stored values; unknown names read as ``basic``."""

        if isinstance(value, PlanTier):
            return value
        normalized = (value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            logger.warning("unknown_plan_fallback", plan=value, fallback=cls.BASIC.value)
            return cls.BASIC

    @classmethod
    def from_request(cls, value: "str | PlanTier | None") -> "PlanTier":
        """Strict lookup for user input."""

        if isinstance(value, PlanTier):
            return value
        normalized = (value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationFailed(f"Unknown plan {value!r}.", code="plan.invalid", plan=value) from None


_PLAN_ORDER = (PlanTier.STARTER, PlanTier.BASIC, PlanTier.PRO)


class StudentType(str, Enum):
    SCHOOL = "school_student"
    COACHING = "coaching_student"

    @classmethod
    def parse(cls, value: "str | StudentType | None") -> "StudentType":
        if isinstance(value, StudentType):
            return value
        if value == cls.COACHING.value:
            return cls.COACHING
        return cls.SCHOOL


class UsageType(str, Enum):
    CHAT = "chat"
    IMAGE = "image"


@dataclass(frozen=True, slots=True)
class Entitlements:
    plan: PlanTier
    chats_per_day: int
    images_per_day: int
    premium_voice: bool
    monthly_price: int
    tts_char_limit: int = 0

    def limit_for(self, usage_type: UsageType) -> int:
        if usage_type is UsageType.CHAT:
            return self.chats_per_day
        return self.images_per_day


PLAN_CATALOG: Mapping[PlanTier, Entitlements] = MappingProxyType(
    {
        PlanTier.STARTER: Entitlements(
            plan=PlanTier.STARTER,
            chats_per_day=15,
            images_per_day=2,
            premium_voice=False,
            monthly_price=50,
        ),
        PlanTier.BASIC: Entitlements(
            plan=PlanTier.BASIC,
            chats_per_day=40,
            images_per_day=6,
            premium_voice=False,
            monthly_price=99,
        ),
        PlanTier.PRO: Entitlements(
            plan=PlanTier.PRO,
            chats_per_day=70,
            images_per_day=12,
            premium_voice=True,
            monthly_price=199,
            tts_char_limit=PRO_TTS_CHAR_LIMIT,
        ),
    }
)


def get_entitlements(plan: "str | PlanTier | None") -> Entitlements:
    return PLAN_CATALOG[PlanTier.parse(plan)]


def base_plan_for(student_type: "str | StudentType | None") -> PlanTier:
    """Plan a student falls back to when nothing better is active."""

    match StudentType.parse(student_type):
        case StudentType.COACHING:
            return PlanTier.STARTER
        case StudentType.SCHOOL:
            return PlanTier.BASIC


def upgrade_targets(student_type: "str | StudentType | None") -> frozenset[PlanTier]:
    match StudentType.parse(student_type):
        case StudentType.COACHING:
            return frozenset({PlanTier.BASIC, PlanTier.PRO})
        case StudentType.SCHOOL:
            return frozenset({PlanTier.PRO})


__all__ = [
    "Entitlements",
    "PLAN_CATALOG",
    "PRO_TTS_CHAR_LIMIT",
    "PlanTier",
    "StudentType",
    "UsageType",
    "base_plan_for",
    "get_entitlements",
    "upgrade_targets",
]
