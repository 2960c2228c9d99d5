"""Application entrypoint."""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studybuddy.api.errors import register_exception_handlers
from studybuddy.api.routers import setup_routers
from studybuddy.config import AppSettings, get_settings
from studybuddy.db.session import Database
from studybuddy.i18n import I18nService
from studybuddy.logging import configure_logging, logger
from studybuddy.services.expiry import ExpirySweeper


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: AppSettings = app.state.settings
    database: Database = app.state.database

    sweep_task: asyncio.Task | None = None
    interval = settings.subscriptions.sweep_interval_seconds
    if interval:
        sweeper = ExpirySweeper(database.session_factory, settings)
        sweep_task = asyncio.create_task(sweeper.run_forever(interval))
        logger.info("expiry_sweep_scheduled", interval_seconds=interval)

    logger.info("api_starting", environment=settings.environment)
    try:
        yield
    finally:
        if sweep_task is not None:
            sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweep_task
        await database.dispose()
        logger.info("api_stopped")


def create_app(
    settings: AppSettings | None = None,
    database: Database | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="StudyBuddy Entitlements", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database or Database(settings=settings)
    app.state.i18n = I18nService(default_locale=settings.default_language)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(setup_routers())
    return app


def main() -> None:
    settings = get_settings()
    # Human-readable logs for local development, JSON everywhere else.
    configure_logging(json_logs=settings.environment != "dev")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
