# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leavedesk.models.enums import LeavePriority, LeaveStatus, Role, StepDecision, StepStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitLeavePayload(BaseModel):
    """Request body for submitting a leave application.

    ``employee_id`` defaults to the acting user; filing for someone else is
    limited to the roles configured in ``on_behalf_roles``.
    """

    leave_type: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=2000)
    priority: LeavePriority = LeavePriority.NORMAL
    employee_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class UpdateLeavePayload(BaseModel):
    """Partial update of a pending application; omitted fields keep their value."""

    leave_type: str | None = Field(default=None, min_length=1, max_length=100)
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = Field(default=None, min_length=1, max_length=2000)
    priority: LeavePriority | None = None


class DecisionPayload(BaseModel):
    """Request body for deciding the current workflow step.

    ``step_order`` optionally names the step the approver believes is current;
    it is checked against the workflow sequence.
    """

    decision: StepDecision
    comments: str | None = Field(default=None, max_length=2000)
    step_order: int | None = Field(default=None, ge=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApprovalStepResponse(BaseModel):
    order: int
    approver_role: Role
    approver_id: uuid.UUID | None
    status: StepStatus
    comments: str | None
    action_date: datetime | None
    acted_by: uuid.UUID | None


class LeaveResponse(BaseModel):
    """Response schema for a single leave application."""

    id: uuid.UUID
    employee_id: uuid.UUID
    department_id: uuid.UUID | None
    leave_type: str
    start_date: date
    end_date: date
    total_days: int
    reason: str
    priority: LeavePriority
    status: LeaveStatus
    submission_date: datetime
    submitted_by: uuid.UUID
    last_modified: datetime
    modified_by: uuid.UUID | None
    approval_workflow: list[ApprovalStepResponse]


class LeaveListResponse(BaseModel):
    """Paginated list of leave applications."""

    items: list[LeaveResponse]
    total: int
