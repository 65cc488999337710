from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.models import (
    ApprovalStep,
    AuditLog,
    EmployeeBookingLock,
    LeaveApplication,
    LeaveBalance,
    LeavePolicy,
    LeaveStatus,
    LeaveTransaction,
    SQLModel,
    StepStatus,
)

EXPECTED_TABLES = {
    "audit_log",
    "employee_booking_lock",
    "leave_application",
    "leave_approval_step",
    "leave_balance",
    "leave_policy",
    "leave_transaction",
}


def test_all_tables_registered() -> None:
    assert set(SQLModel.metadata.tables.keys()) == EXPECTED_TABLES


def test_policy_defaults() -> None:
    policy = LeavePolicy(leave_type="annual", default_allocation=15)
    assert policy.id is not None
    assert policy.max_advance_booking_days == 365
    assert policy.allow_carry_forward is False
    assert policy.carry_forward_limit is None
    assert policy.is_active is True


def test_balance_starts_at_version_one() -> None:
    balance = LeaveBalance(employee_id=uuid.uuid4(), leave_type="annual", year=2026)
    assert balance.version == 1
    assert balance.remaining == 0
    assert balance.transaction_count == 0


def test_application_defaults() -> None:
    employee_id = uuid.uuid4()
    application = LeaveApplication(
        employee_id=employee_id,
        leave_type="annual",
        start_date=date(2026, 3, 2),
        end_date=date(2026, 3, 6),
        total_days=5,
        ledger_year=2026,
        reason="Trip",
        submitted_by=employee_id,
    )
    assert application.status == LeaveStatus.PENDING
    assert application.priority == "normal"
    assert application.version == 1
    assert application.modified_by is None


def test_step_defaults_to_pending() -> None:
    step = ApprovalStep(application_id=uuid.uuid4(), step_order=1, approver_role="admin")
    assert step.status == StepStatus.PENDING
    assert step.approver_id is None
    assert step.acted_by is None


def test_audit_log_instantiation() -> None:
    entry = AuditLog(
        actor_id=uuid.uuid4(),
        entity_type="BALANCE",
        entity_id=uuid.uuid4(),
        action="ADJUST",
        after_json={"remaining": 3},
    )
    assert entry.before_json is None
    assert entry.after_json == {"remaining": 3}


async def test_balance_rejects_inconsistent_remaining(db_session: AsyncSession) -> None:
    db_session.add(
        LeaveBalance(
            employee_id=uuid.uuid4(),
            leave_type="annual",
            year=2026,
            total_allocated=10,
            pending=2,
            remaining=10,
        )
    )
    with pytest.raises(IntegrityError):
        await db_session.flush()


async def test_balance_unique_per_employee_type_year(db_session: AsyncSession) -> None:
    employee_id = uuid.uuid4()
    db_session.add(LeaveBalance(employee_id=employee_id, leave_type="annual", year=2026))
    await db_session.flush()
    db_session.add(LeaveBalance(employee_id=employee_id, leave_type="annual", year=2026))
    with pytest.raises(IntegrityError):
        await db_session.flush()


async def test_transaction_entry_numbers_unique_per_balance(db_session: AsyncSession) -> None:
    balance = LeaveBalance(employee_id=uuid.uuid4(), leave_type="sick", year=2026)
    db_session.add(balance)
    await db_session.flush()

    def _entry(entry_no: int) -> LeaveTransaction:
        return LeaveTransaction(
            balance_id=balance.id,
            entry_no=entry_no,
            employee_id=balance.employee_id,
            leave_type="sick",
            year=2026,
            transaction_type="allocated",
            amount=1,
        )

    db_session.add(_entry(1))
    await db_session.flush()
    stored = (await db_session.execute(select(LeaveTransaction))).scalars().all()
    assert [t.entry_no for t in stored] == [1]

    db_session.add(_entry(1))
    with pytest.raises(IntegrityError):
        await db_session.flush()


async def test_one_booking_lock_per_employee(db_session: AsyncSession) -> None:
    employee_id = uuid.uuid4()
    db_session.add(EmployeeBookingLock(employee_id=employee_id))
    await db_session.flush()
    db_session.add(EmployeeBookingLock(employee_id=employee_id))
    with pytest.raises(IntegrityError):
        await db_session.flush()
