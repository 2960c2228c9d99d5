"""Where the speech selector reads and debits the premium voice quota.

``EntitlementsClient`` talks to the entitlement HTTP API; ``DatabaseTTSLedger``
does the same work in-process when the caller already has a database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

import httpx

from studybuddy.config import AppSettings, get_settings
from studybuddy.db.session import Database
from studybuddy.domain.models import DomainModel, TTSDecision
from studybuddy.domain.plans import PlanTier
from studybuddy.logging import logger
from studybuddy.services.subscriptions import SubscriptionService
from studybuddy.utils.datetime import as_utc, utc_now
from studybuddy.utils.retry import retry_async


class LedgerError(RuntimeError):
    """Raised when quota information cannot be read or written."""


class TTSUsageInfo(DomainModel):
    plan: str = PlanTier.BASIC.value
    tts_used: int = 0
    tts_limit: int = 0
    tts_remaining: int = 0
    can_use_premium: bool = False

    @classmethod
    def from_subscription(
        cls,
        *,
        plan: str | None,
        tts_used: int | None,
        tts_limit: int | None,
        is_active: bool | None = True,
        end_date: datetime | None = None,
        now: datetime | None = None,
    ) -> "TTSUsageInfo":
        tier = PlanTier.parse(plan)
        used = tts_used or 0
        limit = tts_limit if tts_limit is not None else 0
        expired = end_date is not None and as_utc(end_date) < (now or utc_now())
        return cls(
            plan=tier.value,
            tts_used=used,
            tts_limit=limit,
            tts_remaining=max(0, limit - used),
            can_use_premium=(
                tier is PlanTier.PRO and is_active is not False and not expired and used < limit
            ),
        )

    def after_debit(self, decision: TTSDecision) -> "TTSUsageInfo":
        """Counters reported by a debit call, keeping the plan we already know."""

        if decision.tts_used is None or decision.tts_limit is None:
            return self.model_copy(update={"can_use_premium": decision.use_premium_tts})
        remaining = max(0, decision.tts_limit - decision.tts_used)
        return self.model_copy(
            update={
                "tts_used": decision.tts_used,
                "tts_limit": decision.tts_limit,
                "tts_remaining": remaining,
                "can_use_premium": remaining > 0 and decision.reason is None,
            }
        )


class TTSLedger(Protocol):
    async def usage(self, student_id: int) -> TTSUsageInfo: ...

    async def increment_tts(self, student_id: int, character_count: int) -> TTSDecision: ...


class EntitlementsClient:
    """HTTP client for the entitlement API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str | None = None,
        settings: AppSettings | None = None,
    ) -> None:
        self._client = http_client
        self._settings = settings or get_settings()
        self._base_url = str(base_url or self._settings.api.base_url).rstrip("/")

    async def usage(self, student_id: int) -> TTSUsageInfo:
        async def _request() -> httpx.Response:
            response = await self._client.get(
                f"{self._base_url}/subscriptions/{student_id}",
                timeout=self._settings.speech.request_timeout_seconds,
            )
            response.raise_for_status()
            return response

        try:
            response = await retry_async(
                _request,
                max_attempts=self._settings.api.read_retry_attempts,
                base_delay=self._settings.api.read_retry_delay_seconds,
                logger=logger,
                operation_name="tts_usage_fetch",
            )
        except httpx.HTTPStatusError as exc:
            raise LedgerError(
                f"Usage lookup failed ({exc.response.status_code}): {exc.response.text[:200]}"
            ) from exc
        except httpx.RequestError as exc:
            raise LedgerError(f"Usage lookup failed: {exc}") from exc

        subscription: dict[str, Any] = (self._json(response).get("subscription") or {})
        return TTSUsageInfo.from_subscription(
            plan=subscription.get("plan"),
            tts_used=subscription.get("ttsUsed"),
            tts_limit=subscription.get("ttsLimit"),
            is_active=subscription.get("isActive", True),
            end_date=self._parse_datetime(subscription.get("endDate")),
        )

    async def increment_tts(self, student_id: int, character_count: int) -> TTSDecision:
        # Debits are never retried: a lost response must not charge twice.
        try:
            response = await self._client.post(
                f"{self._base_url}/tts/increment",
                json={"studentId": student_id, "characterCount": character_count},
                timeout=self._settings.speech.request_timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise LedgerError(
                f"TTS debit failed ({exc.response.status_code}): {exc.response.text[:200]}"
            ) from exc
        except httpx.RequestError as exc:
            raise LedgerError(f"TTS debit failed: {exc}") from exc
        return TTSDecision.model_validate(self._json(response))

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise LedgerError("Entitlement API returned invalid JSON.") from exc
        if not isinstance(data, dict):
            raise LedgerError("Entitlement API returned an unexpected payload.")
        return data

    @staticmethod
    def _parse_datetime(value: Any) -> datetime | None:
        if not value:
            return None
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None


class DatabaseTTSLedger:
    """Same contract as :class:`EntitlementsClient`, backed by the database directly."""

    def __init__(self, database: Database, settings: AppSettings | None = None) -> None:
        self._database = database
        self._settings = settings or get_settings()

    async def usage(self, student_id: int) -> TTSUsageInfo:
        async def _read() -> TTSUsageInfo:
            async with self._database.session() as session:
                service = SubscriptionService(session, self._settings)
                student = await service.get_student(student_id)
                subscription = await service.get_subscription(student)
                return TTSUsageInfo.from_subscription(
                    plan=subscription.plan,
                    tts_used=subscription.tts_used,
                    tts_limit=subscription.tts_limit,
                    is_active=subscription.is_active,
                    end_date=subscription.end_date,
                )

        return await retry_async(
            _read,
            max_attempts=self._settings.api.read_retry_attempts,
            base_delay=self._settings.api.read_retry_delay_seconds,
            logger=logger,
            operation_name="tts_usage_read",
        )

    async def increment_tts(self, student_id: int, character_count: int) -> TTSDecision:
        async with self._database.transaction() as session:
            return await SubscriptionService(session, self._settings).increment_tts(
                student_id, character_count
            )


__all__ = [
    "DatabaseTTSLedger",
    "EntitlementsClient",
    "LedgerError",
    "TTSLedger",
    "TTSUsageInfo",
]
