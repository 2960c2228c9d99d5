"""Tests for retry_async and the read helper built on it."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from studybuddy.api.deps import read_with_retry
from studybuddy.utils.retry import retry_async


class RecordingLogger:
    def __init__(self) -> None:
        self.events = []

    def warning(self, event, **kwargs):
        self.events.append((event, kwargs))


def _flaky(failures: int, exc_factory):
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise exc_factory()
        return "ok"

    return operation, calls


@pytest.mark.asyncio
async def test_retry_async_recovers_after_failure():
    operation, calls = _flaky(1, lambda: RuntimeError("boom"))
    logger = RecordingLogger()

    result = await retry_async(operation, base_delay=0, logger=logger, operation_name="demo")

    assert result == "ok"
    assert calls["count"] == 2
    assert logger.events[0][0] == "retrying_operation"
    assert logger.events[0][1]["operation"] == "demo"


@pytest.mark.asyncio
async def test_retry_async_gives_up_after_max_attempts():
    operation, calls = _flaky(5, lambda: RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        await retry_async(operation, max_attempts=3, base_delay=0)

    assert calls["count"] == 3


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_other_errors():
    operation, calls = _flaky(1, lambda: KeyError("nope"))

    with pytest.raises(KeyError):
        await retry_async(operation, base_delay=0, retry_on=(RuntimeError,))

    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_read_with_retry_only_retries_storage_errors(settings):
    settings.api.read_retry_delay_seconds = 0
    storage, storage_calls = _flaky(1, lambda: OperationalError("SELECT 1", {}, Exception("gone")))
    domain, domain_calls = _flaky(1, lambda: ValueError("bad input"))

    assert await read_with_retry(storage, settings, "storage_read") == "ok"
    with pytest.raises(ValueError):
        await read_with_retry(domain, settings, "domain_read")

    assert storage_calls["count"] == 2
    assert domain_calls["count"] == 1
