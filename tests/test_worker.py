from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import col

from leavedesk import worker
from leavedesk.models.audit import AuditLog
from leavedesk.models.balance import LeaveBalance
from leavedesk.models.policy import LeavePolicy
from leavedesk.schemas.balance import InitializeYearResponse
from leavedesk.services import ledger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from tests.conftest import People

YEAR = 2027


@pytest.fixture
def use_test_engine(engine: AsyncEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(worker, "get_session_factory", lambda: async_sessionmaker(engine, expire_on_commit=False))


@pytest.mark.usefixtures("use_test_engine")
async def test_opens_year_for_directory_and_prior_holders(db_session: AsyncSession, people: People) -> None:
    db_session.add(LeavePolicy(leave_type="annual", default_allocation=15, allow_carry_forward=True))
    await db_session.commit()
    departed = uuid.uuid4()
    await ledger.initialize_year(db_session, departed, "annual", YEAR - 1, 15)
    await ledger.reserve(db_session, people.staff.id, "annual", YEAR - 1, 4)
    await db_session.commit()

    summary = await worker.run_year_initialization(YEAR)
    assert summary.employees == len(people.all()) + 1
    assert summary.created == summary.employees

    staff = await ledger.load_balance(db_session, people.staff.id, "annual", YEAR)
    assert (staff.carried_forward, staff.remaining) == (11, 26)

    audits = await db_session.execute(select(AuditLog).where(col(AuditLog.actor_id) == worker.SYSTEM_ACTOR_ID))
    assert len(audits.scalars().all()) == summary.created


@pytest.mark.usefixtures("use_test_engine")
async def test_explicit_employees_and_rerun(db_session: AsyncSession, people: People) -> None:
    db_session.add(LeavePolicy(leave_type="sick", default_allocation=10))
    await db_session.commit()

    first = await worker.run_year_initialization(YEAR, [people.staff.id])
    assert (first.employees, first.created, first.skipped) == (1, 1, 0)
    second = await worker.run_year_initialization(YEAR, [people.staff.id])
    assert (second.created, second.skipped) == (0, 1)

    result = await db_session.execute(select(LeaveBalance).where(col(LeaveBalance.year) == YEAR))
    assert len(result.scalars().all()) == 1


def test_main_reports_summary(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="leavedesk.worker")
    seen: dict[str, object] = {}

    async def fake_run(year: int, employee_ids: list[uuid.UUID] | None = None) -> InitializeYearResponse:
        seen.update(year=year, employee_ids=employee_ids)
        return InitializeYearResponse(year=year, employees=2, created=3, skipped=1)

    monkeypatch.setattr(worker, "run_year_initialization", fake_run)
    employee_id = uuid.uuid4()
    worker.main(["--year", str(YEAR), "--employee-id", str(employee_id)])

    assert seen == {"year": YEAR, "employee_ids": [employee_id]}
    assert "3 balances created" in caplog.text


def test_main_exits_nonzero_on_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_run(year: int, employee_ids: list[uuid.UUID] | None = None) -> InitializeYearResponse:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(worker, "run_year_initialization", failing_run)
    with pytest.raises(SystemExit) as exc_info:
        worker.main(["--year", str(YEAR)])
    assert exc_info.value.code == 1
