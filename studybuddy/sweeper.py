"""One-shot expiry sweep, suitable for cron: ``python -m studybuddy.sweeper``."""

from __future__ import annotations

import asyncio

from studybuddy.config import AppSettings, get_settings
from studybuddy.db.session import Database
from studybuddy.domain.models import SweepReport
from studybuddy.logging import configure_logging
from studybuddy.services.expiry import ExpirySweeper


async def run_once(
    settings: AppSettings | None = None,
    database: Database | None = None,
) -> SweepReport:
    settings = settings or get_settings()
    owned = database is None
    database = database or Database(settings=settings)
    try:
        return await ExpirySweeper(database.session_factory, settings).sweep()
    finally:
        if owned:
            await database.dispose()


def main() -> None:
    configure_logging()
    report = asyncio.run(run_once())
    print(report.model_dump_json(by_alias=True))


if __name__ == "__main__":
    main()
