"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from studybuddy.config import AppSettings
from studybuddy.db.session import Database
from studybuddy.i18n import I18nService
from studybuddy.logging import logger
from studybuddy.utils.retry import retry_async

T = TypeVar("T")


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_app_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_i18n(request: Request) -> I18nService:
    return request.app.state.i18n


def get_locale(request: Request) -> str:
    return get_i18n(request).negotiate(request.headers.get("accept-language"))


async def read_with_retry(
    operation: Callable[[], Awaitable[T]],
    settings: AppSettings,
    operation_name: str,
) -> T:
    """Run an idempotent read, retrying storage failures in a fresh session."""

    return await retry_async(
        operation,
        max_attempts=settings.api.read_retry_attempts,
        base_delay=settings.api.read_retry_delay_seconds,
        retry_on=(SQLAlchemyError,),
        logger=logger,
        operation_name=operation_name,
    )


__all__ = [
    "get_app_settings",
    "get_database",
    "get_i18n",
    "get_locale",
    "read_with_retry",
]
