"""Institution admin endpoints for settling upgrade requests."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.api.deps import (
    get_app_settings,
    get_database,
    get_i18n,
    get_locale,
    read_with_retry,
)
from studybuddy.api.schemas import ActionResult, InstitutionSessionBody, RejectBody
from studybuddy.config import AppSettings
from studybuddy.db.session import Database
from studybuddy.domain.models import RequestListing
from studybuddy.domain.plans import PlanTier
from studybuddy.i18n import I18nService
from studybuddy.services.auth import InstitutionContext, SessionAuthenticator
from studybuddy.services.upgrades import UpgradeRequestService

router = APIRouter(prefix="/institutions", tags=["institutions"])


async def _authenticate(session: AsyncSession, body: InstitutionSessionBody) -> InstitutionContext:
    return await SessionAuthenticator(session).authenticate_institution(
        body.session_token, body.institution_type, body.institution_id
    )


@router.post("/requests", response_model=RequestListing)
async def list_requests(
    body: InstitutionSessionBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
) -> RequestListing:
    async def _read() -> RequestListing:
        async with database.session() as session:
            institution = await _authenticate(session, body)
            return await UpgradeRequestService(session, settings).list_requests(institution)

    return await read_with_retry(_read, settings, "upgrade_request_listing")


@router.post("/requests/{request_id}/approve", response_model=ActionResult)
async def approve_request(
    request_id: int,
    body: InstitutionSessionBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
    i18n: I18nService = Depends(get_i18n),
    locale: str = Depends(get_locale),
) -> ActionResult:
    async with database.transaction() as session:
        institution = await _authenticate(session, body)
        request = await UpgradeRequestService(session, settings).approve_request(
            institution, request_id
        )
        plan = PlanTier.parse(request.requested_plan)
    message = i18n.gettext(
        "upgrade.approved",
        locale=locale,
        plan=plan.value.title(),
        days=settings.subscriptions.activation_days,
    )
    return ActionResult(message=message)


@router.post("/requests/{request_id}/reject", response_model=ActionResult)
async def reject_request(
    request_id: int,
    body: RejectBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
    i18n: I18nService = Depends(get_i18n),
    locale: str = Depends(get_locale),
) -> ActionResult:
    async with database.transaction() as session:
        institution = await _authenticate(session, body)
        await UpgradeRequestService(session, settings).reject_request(
            institution, request_id, body.reason
        )
    return ActionResult(message=i18n.gettext("upgrade.rejected", locale=locale))


@router.post("/students/{student_id}/block", response_model=ActionResult)
async def block_student(
    student_id: int,
    body: InstitutionSessionBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
    i18n: I18nService = Depends(get_i18n),
    locale: str = Depends(get_locale),
) -> ActionResult:
    async with database.transaction() as session:
        institution = await _authenticate(session, body)
        await UpgradeRequestService(session, settings).block_student(institution, student_id)
    return ActionResult(message=i18n.gettext("student.blocked", locale=locale))


@router.post("/students/{student_id}/cancel-pro", response_model=ActionResult)
async def cancel_pro(
    student_id: int,
    body: InstitutionSessionBody,
    database: Database = Depends(get_database),
    settings: AppSettings = Depends(get_app_settings),
    i18n: I18nService = Depends(get_i18n),
    locale: str = Depends(get_locale),
) -> ActionResult:
    async with database.transaction() as session:
        institution = await _authenticate(session, body)
        await UpgradeRequestService(session, settings).cancel_pro(institution, student_id)
    return ActionResult(message=i18n.gettext("subscription.cancelled", locale=locale))


__all__ = ["router"]
