"""Map service errors to localized JSON responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from studybuddy.api.deps import get_i18n, get_locale
from studybuddy.logging import logger
from studybuddy.services.exceptions import ServiceError, ValidationFailed


def _error_body(request: Request, error: ServiceError) -> dict:
    message = get_i18n(request).error_message(error, locale=get_locale(request))
    return {"success": False, "error": message, "code": error.code}


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger.info(
        "service_error",
        code=exc.code,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
        detail=str(exc),
    )
    return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
    logger.info("request_validation_failed", path=request.url.path, fields=fields)
    error = ValidationFailed("Request body failed validation.")
    return JSONResponse(status_code=error.status_code, content=_error_body(request, error))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(status_code=500, content=_error_body(request, ServiceError()))


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(ServiceError)(service_error_handler)
    app.exception_handler(RequestValidationError)(validation_error_handler)
    app.exception_handler(Exception)(generic_exception_handler)


__all__ = [
    "generic_exception_handler",
    "register_exception_handlers",
    "service_error_handler",
    "validation_error_handler",
]
