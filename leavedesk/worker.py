"""Year-start balance initialization job.

Run once at the start of each leave year (cron, a scheduled container, or by
hand):

    leavedesk-init-year --year 2027
    leavedesk-init-year --year 2027 --employee-id <uuid> --employee-id <uuid>

Without explicit employees it opens the year for everyone who held a balance
the year before plus everyone the directory knows about. Existing balances
are skipped, so the job is safe to re-run.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import uuid
from datetime import date

from leavedesk.config import get_settings
from leavedesk.db import dispose_engine, get_session_factory
from leavedesk.schemas.balance import InitializeYearResponse
from leavedesk.services import ledger as ledger_service
from leavedesk.services.directory import get_directory_service

logger = logging.getLogger(__name__)

# Actor recorded in the audit log for scheduled runs.
SYSTEM_ACTOR_ID = uuid.UUID(int=0)


async def run_year_initialization(year: int, employee_ids: list[uuid.UUID] | None = None) -> InitializeYearResponse:
    session_factory = get_session_factory()
    async with session_factory() as session:
        if not employee_ids:
            known = await ledger_service.employees_with_balances(session, year - 1)
            directory = [e.id for e in await get_directory_service().list_employees()]
            employee_ids = list(dict.fromkeys([*known, *directory]))
        logger.info("Initializing year %d for %d employees", year, len(employee_ids))
        return await ledger_service.initialize_year_for_all(session, year, employee_ids, SYSTEM_ACTOR_ID)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Open leave balances for a new year.")
    parser.add_argument("--year", type=int, default=date.today().year)
    parser.add_argument("--employee-id", dest="employee_ids", type=uuid.UUID, action="append", default=[])
    return parser.parse_args(argv)


async def _main(args: argparse.Namespace) -> InitializeYearResponse:
    try:
        return await run_year_initialization(args.year, args.employee_ids)
    finally:
        await dispose_engine()


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``leavedesk-init-year`` console script."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    args = _parse_args(argv)
    try:
        summary = asyncio.run(_main(args))
    except Exception:
        logger.exception("Year initialization failed for %d", args.year)
        raise SystemExit(1) from None
    logger.info(
        "Year %d: %d employees, %d balances created, %d skipped",
        summary.year,
        summary.employees,
        summary.created,
        summary.skipped,
    )


if __name__ == "__main__":
    main()
