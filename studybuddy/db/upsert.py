"""Insert-or-fetch helper for rows guarded by unique constraints."""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


async def insert_or_fetch(
    session: AsyncSession,
    instance: T,
    fetch: Callable[[], Awaitable[T | None]],
) -> T:
    """Insert ``instance`` inside a savepoint; on a unique clash return the winner."""

    try:
        async with session.begin_nested():
            session.add(instance)
        return instance
    except IntegrityError:
        existing = await fetch()
        if existing is None:
            raise
        return existing


__all__ = ["insert_or_fetch"]
