from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import TimestampMixin, UUIDBase, now_utc


class LeavePolicy(UUIDBase, TimestampMixin, table=True):
    """Entitlement rules for one leave type (e.g. Annual, Sick)."""

    __tablename__ = "leave_policy"
    __table_args__ = (sa.UniqueConstraint("leave_type", name="uq_policy_leave_type"),)

    leave_type: str = Field(max_length=100, index=True)
    description: str = Field(default="", max_length=1000)
    default_allocation: int = Field(default=0)
    max_consecutive_days: int = Field(default=365)
    min_advance_notice_days: int = Field(default=0)
    max_advance_booking_days: int = Field(default=365)
    allow_carry_forward: bool = Field(default=False)
    carry_forward_limit: int | None = None
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
