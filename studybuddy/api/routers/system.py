"""Operational endpoints: expiry sweep, platform stats and health."""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, Header

from studybuddy.api.deps import get_app_settings, get_database, read_with_retry
from studybuddy.api.schemas import AdminSessionBody
from studybuddy.config import AppSettings
from studybuddy.db.session import Database
from studybuddy.domain.models import StatsReport, SweepReport
from studybuddy.logging import logger
from studybuddy.services.auth import SessionAuthenticator
from studybuddy.services.exceptions import SessionInvalid
from studybuddy.services.expiry import ExpirySweeper
from studybuddy.services.stats import InstitutionStatsService

router = APIRouter(tags=["system"])


@router.post("/system/sweep-expired", response_model=SweepReport)
async def sweep_expired(
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
    x_sweep_token: str | None = Header(default=None),
) -> SweepReport:
    expected = settings.subscriptions.sweep_token
    if expected is not None and not secrets.compare_digest(
        x_sweep_token or "", expected.get_secret_value()
    ):
        logger.warning("sweep_token_rejected")
        raise SessionInvalid("Invalid sweep token.")
    return await ExpirySweeper(database.session_factory, settings).sweep()


@router.post("/admin/stats", response_model=StatsReport)
async def institution_stats(
    body: AdminSessionBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
) -> StatsReport:
    async def _read() -> StatsReport:
        async with database.session() as session:
            await SessionAuthenticator(session).authenticate_admin(body.session_token)
            return await InstitutionStatsService(session).collect()

    return await read_with_retry(_read, settings, "institution_stats")


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


__all__ = ["router"]
