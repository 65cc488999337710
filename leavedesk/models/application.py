# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import TimestampMixin, UUIDBase, VersionedMixin, now_utc
from leavedesk.models.enums import LeavePriority, LeaveStatus, StepStatus


class LeaveApplication(UUIDBase, TimestampMixin, VersionedMixin, table=True):
    """One employee's leave request and its workflow state."""

    __tablename__ = "leave_application"
    __table_args__ = (
        sa.Index("ix_application_employee_status", "employee_id", "status"),
        sa.Index("ix_application_department_status", "department_id", "status"),
    )

    employee_id: uuid.UUID = Field(index=True)
    department_id: uuid.UUID | None = None
    leave_type: str = Field(max_length=100)
    start_date: date
    end_date: date
    total_days: int
    # Ledger year the reservation was charged to.
    ledger_year: int
    reason: str = Field(max_length=2000)
    priority: str = Field(default=LeavePriority.NORMAL, max_length=20)
    status: str = Field(
        default=LeaveStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    submission_date: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    submitted_by: uuid.UUID
    last_modified: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    modified_by: uuid.UUID | None = None


class EmployeeBookingLock(UUIDBase, VersionedMixin, table=True):
    """Per-employee row whose version every submission and update bumps.

    Claiming it before the overlap check orders an employee's bookings, so
    two concurrent requests for the same days cannot both pass the check.
    """

    __tablename__ = "employee_booking_lock"

    employee_id: uuid.UUID = Field(unique=True)
    updated_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class ApprovalStep(UUIDBase, table=True):
    """One ordered decision point in an application's approval workflow."""

    __tablename__ = "leave_approval_step"
    __table_args__ = (sa.UniqueConstraint("application_id", "step_order", name="uq_step_application_order"),)

    application_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_application.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    step_order: int
    approver_role: str = Field(max_length=50)
    # Designated approver; None means any holder of approver_role may act.
    approver_id: uuid.UUID | None = None
    status: str = Field(default=StepStatus.PENDING, max_length=20)
    comments: str | None = Field(default=None, max_length=2000)
    action_date: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    acted_by: uuid.UUID | None = None
