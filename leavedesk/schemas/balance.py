# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from leavedesk.models.enums import TransactionType

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Entitlement totals for one employee, leave type and year."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: str
    year: int
    total_allocated: int
    used: int
    pending: int
    carried_forward: int
    remaining: int
    version: int
    updated_at: datetime


class BalanceListResponse(BaseModel):
    items: list[BalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Transaction response schemas
# ---------------------------------------------------------------------------


class TransactionResponse(BaseModel):
    """A single ledger transaction."""

    id: uuid.UUID
    entry_no: int
    transaction_type: TransactionType
    amount: int
    description: str
    application_id: uuid.UUID | None
    created_at: datetime


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int


# ---------------------------------------------------------------------------
# Administrative payloads
# ---------------------------------------------------------------------------


class InitializeYearPayload(BaseModel):
    """Request body for year-start balance initialization.

    Without ``employee_id`` every employee in the directory is initialized.
    """

    year: int = Field(ge=2000, le=2100)
    employee_id: uuid.UUID | None = None


class InitializeYearResponse(BaseModel):
    year: int
    employees: int
    created: int
    skipped: int


class AdjustmentPayload(BaseModel):
    """Request body for an administrative balance adjustment."""

    employee_id: uuid.UUID
    leave_type: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=2000, le=2100)
    amount: int = Field(description="Signed day count: positive grants, negative deducts")
    reason: str = Field(min_length=1, max_length=1000)
