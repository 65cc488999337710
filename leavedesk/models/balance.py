# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import TimestampMixin, UUIDBase, VersionedMixin, now_utc


class LeaveBalance(UUIDBase, TimestampMixin, VersionedMixin, table=True):
    """Entitlement totals for one (employee, leave type, year) key.

    ``remaining`` is stored alongside its inputs and always equals
    ``total_allocated + carried_forward - used - pending``. Rows change only
    through the ledger service's compare-and-swap writes.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "leave_type", "year", name="uq_balance_employee_type_year"),
        sa.CheckConstraint(
            "remaining = total_allocated + carried_forward - used - pending",
            name="ck_balance_remaining",
        ),
        sa.CheckConstraint(
            "total_allocated >= 0 AND carried_forward >= 0 AND used >= 0 AND pending >= 0 AND remaining >= 0",
            name="ck_balance_non_negative",
        ),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type: str = Field(max_length=100)
    year: int
    total_allocated: int = Field(default=0)
    used: int = Field(default=0)
    pending: int = Field(default=0)
    carried_forward: int = Field(default=0)
    remaining: int = Field(default=0)
    transaction_count: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now()},
    )
