"""Time utilities with timezone-aware defaults."""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return current UTC time with tzinfo."""

    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values read back from the database."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(tz_name: str, now: datetime | None = None) -> date:
    """Calendar date in ``tz_name`` for the given (or current) instant."""

    instant = as_utc(now) or utc_now()
    return instant.astimezone(ZoneInfo(tz_name)).date()


__all__ = ["as_utc", "local_date", "utc_now"]
