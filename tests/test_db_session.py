"""Tests for the Database session helpers."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from factories import create_school
from studybuddy.db.models.core import School
from studybuddy.db.session import Database


@pytest.mark.asyncio
async def test_transaction_commits_on_success(session_factory, settings):
    database = Database(settings, session_factory=session_factory)

    async with database.transaction() as session:
        await create_school(session, code="TX1")

    async with database.session() as session:
        codes = (await session.execute(select(School.code))).scalars().all()
    assert codes == ["TX1"]


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(session_factory, settings):
    database = Database(settings, session_factory=session_factory)

    with pytest.raises(RuntimeError):
        async with database.transaction() as session:
            await create_school(session, code="TX2")
            raise RuntimeError("boom")

    async with database.session() as session:
        codes = (await session.execute(select(School.code))).scalars().all()
    assert codes == []


@pytest.mark.asyncio
async def test_injected_factory_skips_engine(session_factory, settings):
    database = Database(settings, session_factory=session_factory)

    assert database.session_factory is session_factory
    assert database._engine is None
    await database.dispose()
    assert database.session_factory is session_factory
