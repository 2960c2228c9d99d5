"""Shared pytest fixtures for database-backed service tests."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studybuddy.config import AppSettings
from studybuddy.db.base import Base


class _AsyncNestedTransaction:
    def __init__(self, sync_session) -> None:
        self._sync = sync_session
        self._transaction = None

    async def __aenter__(self):
        self._transaction = self._sync.begin_nested()
        return self._transaction.__enter__()

    async def __aexit__(self, exc_type, exc, tb):
        return self._transaction.__exit__(exc_type, exc, tb)


class _AsyncSessionWrapper:
    def __init__(self, sync_session) -> None:
        self._sync = sync_session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._sync.close()

    async def execute(self, *args, **kwargs):
        return self._sync.execute(*args, **kwargs)

    async def get(self, *args, **kwargs):
        return self._sync.get(*args, **kwargs)

    def add(self, obj) -> None:
        self._sync.add(obj)

    def add_all(self, objs) -> None:
        self._sync.add_all(objs)

    def begin_nested(self) -> _AsyncNestedTransaction:
        return _AsyncNestedTransaction(self._sync)

    async def flush(self) -> None:
        self._sync.flush()

    async def commit(self) -> None:
        self._sync.commit()

    async def rollback(self) -> None:
        self._sync.rollback()

    async def close(self) -> None:
        self._sync.close()


class _AsyncSessionFactory:
    def __init__(self, sync_factory) -> None:
        self._sync_factory = sync_factory

    def __call__(self) -> _AsyncSessionWrapper:
        return _AsyncSessionWrapper(self._sync_factory())


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to behave.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine) -> _AsyncSessionFactory:
    return _AsyncSessionFactory(sessionmaker(bind=engine, expire_on_commit=False))


@pytest_asyncio.fixture
async def session(session_factory):
    wrapper = session_factory()
    try:
        yield wrapper
    finally:
        await wrapper.close()


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(_env_file=None)
