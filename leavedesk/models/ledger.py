# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import UUIDBase, now_utc


class LeaveTransaction(UUIDBase, table=True):
    """Append-only ledger line explaining one change to a balance."""

    __tablename__ = "leave_transaction"
    __table_args__ = (
        sa.UniqueConstraint("balance_id", "entry_no", name="uq_transaction_balance_entry"),
        sa.Index("ix_transaction_employee_type_year", "employee_id", "leave_type", "year"),
    )

    balance_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_balance.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    entry_no: int
    employee_id: uuid.UUID
    leave_type: str = Field(max_length=100)
    year: int
    transaction_type: str = Field(max_length=50)
    amount: int
    description: str = Field(default="", max_length=1000)
    application_id: uuid.UUID | None = Field(default=None, index=True)
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
