# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from leavedesk.api.deps import AuthDep
from leavedesk.db import SessionDep
from leavedesk.schemas.balance import (
    AdjustmentPayload,
    BalanceListResponse,
    BalanceResponse,
    InitializeYearPayload,
    InitializeYearResponse,
    TransactionListResponse,
)
from leavedesk.schemas.common import Envelope, ok
from leavedesk.services import ledger as ledger_service

router = APIRouter(prefix="/balances", tags=["balances"])


def _current_year() -> int:
    return date.today().year


@router.get("", response_model=Envelope[BalanceListResponse])
async def list_balances(
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    employee_id: uuid.UUID | None = Query(default=None),
    leave_type: str | None = Query(default=None),
) -> Envelope[BalanceListResponse]:
    """List balances for a year (default: the current one) within the caller's scope."""
    balances = await ledger_service.list_balances(session, auth, year or _current_year(), employee_id, leave_type)
    return ok(balances, "Balances retrieved")


@router.post("/initialize", response_model=Envelope[InitializeYearResponse])
async def initialize_balances(
    payload: InitializeYearPayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[InitializeYearResponse]:
    """Open the year's balances for one employee or everyone (admin or manager)."""
    summary = await ledger_service.initialize_balances(session, auth, payload)
    return ok(summary, f"Initialized {summary.created} balances for {summary.year}")


@router.post("/adjustments", response_model=Envelope[BalanceResponse], status_code=status.HTTP_201_CREATED)
async def adjust_balance(
    payload: AdjustmentPayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[BalanceResponse]:
    """Grant or deduct days administratively (admin or manager)."""
    return ok(await ledger_service.adjust_balance(session, auth, payload), "Balance adjusted")


@router.get("/{employee_id}/{leave_type}", response_model=Envelope[BalanceResponse])
async def get_balance(
    employee_id: uuid.UUID,
    leave_type: str,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> Envelope[BalanceResponse]:
    balance = await ledger_service.get_balance(session, auth, employee_id, leave_type, year or _current_year())
    return ok(balance, "Balance retrieved")


@router.get("/{employee_id}/{leave_type}/transactions", response_model=Envelope[TransactionListResponse])
async def list_transactions(
    employee_id: uuid.UUID,
    leave_type: str,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
) -> Envelope[TransactionListResponse]:
    """The balance's transaction log, oldest first."""
    transactions = await ledger_service.list_transactions(
        session, auth, employee_id, leave_type, year or _current_year(), offset, limit
    )
    return ok(transactions, "Transactions retrieved")
