"""Student-facing entitlement endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from studybuddy.api.deps import (
    get_app_settings,
    get_database,
    get_i18n,
    get_locale,
    read_with_retry,
)
from studybuddy.api.schemas import ActionResult, TTSIncrementBody, UpgradeBody, UsageCheckBody
from studybuddy.config import AppSettings
from studybuddy.db.session import Database
from studybuddy.domain.models import DailyUsageView, SubscriptionOverview, TTSDecision, UsageCheck
from studybuddy.i18n import I18nService
from studybuddy.services.daily_usage import DailyUsageCounter
from studybuddy.services.overview import build_overview
from studybuddy.services.subscriptions import SubscriptionService
from studybuddy.services.upgrades import UpgradeRequestService

router = APIRouter(tags=["students"])


@router.get("/subscriptions/{student_id}", response_model=SubscriptionOverview)
async def get_subscription_overview(
    student_id: int,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
) -> SubscriptionOverview:
    async def _read() -> SubscriptionOverview:
        async with database.session() as session:
            student = await SubscriptionService(session, settings).get_student(student_id)
            return await build_overview(session, student, settings)

    return await read_with_retry(_read, settings, "subscription_overview")


@router.get("/usage/{student_id}", response_model=DailyUsageView)
async def get_daily_usage(
    student_id: int,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
) -> DailyUsageView:
    async def _read() -> DailyUsageView:
        async with database.session() as session:
            student = await SubscriptionService(session, settings).get_student(student_id)
            return await DailyUsageCounter(session, settings).snapshot(student)

    return await read_with_retry(_read, settings, "daily_usage_snapshot")


@router.post("/usage/check", response_model=UsageCheck, response_model_exclude_none=True)
async def check_usage(
    body: UsageCheckBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
    i18n: I18nService = Depends(get_i18n),
    locale: str = Depends(get_locale),
) -> UsageCheck:
    async with database.transaction() as session:
        student = await SubscriptionService(session, settings).get_student(body.student_id)
        result = await DailyUsageCounter(session, settings).check_and_increment(
            student, body.usage_type
        )
    if result.message_key:
        result.message = i18n.gettext(result.message_key, locale=locale)
    return result


@router.post("/upgrades", response_model=ActionResult)
async def request_upgrade(
    body: UpgradeBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
    i18n: I18nService = Depends(get_i18n),
    locale: str = Depends(get_locale),
) -> ActionResult:
    async with database.transaction() as session:
        student = await SubscriptionService(session, settings).get_student(body.student_id)
        await UpgradeRequestService(session, settings).request_upgrade(
            student, body.requested_plan
        )
    return ActionResult(message=i18n.gettext("upgrade.submitted", locale=locale))


@router.post("/tts/increment", response_model=TTSDecision, response_model_exclude_none=True)
async def increment_tts(
    body: TTSIncrementBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
) -> TTSDecision:
    async with database.transaction() as session:
        return await SubscriptionService(session, settings).increment_tts(
            body.student_id, body.character_count
        )


__all__ = ["router"]
