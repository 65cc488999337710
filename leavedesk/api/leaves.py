# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from leavedesk.api.deps import AuthDep
from leavedesk.db import SessionDep
from leavedesk.models.enums import LeaveStatus
from leavedesk.schemas.common import Envelope, ok
from leavedesk.schemas.leave import (
    DecisionPayload,
    LeaveListResponse,
    LeaveResponse,
    SubmitLeavePayload,
    UpdateLeavePayload,
)
from leavedesk.services import leave as leave_service

router = APIRouter(prefix="/leaves", tags=["leaves"])


@router.post("", response_model=Envelope[LeaveResponse], status_code=status.HTTP_201_CREATED)
async def submit_leave(
    payload: SubmitLeavePayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[LeaveResponse]:
    """Submit a leave application; its days are reserved immediately."""
    return ok(await leave_service.submit_leave(session, auth, payload), "Leave application submitted")


@router.get("", response_model=Envelope[LeaveListResponse])
async def list_leaves(
    session: SessionDep,
    auth: AuthDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    leave_type: str | None = Query(default=None),
    employee_id: uuid.UUID | None = Query(default=None),
    department_id: uuid.UUID | None = Query(default=None),
    start_from: date | None = Query(default=None),
    start_to: date | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> Envelope[LeaveListResponse]:
    """List applications visible to the caller."""
    leaves = await leave_service.list_leaves(
        session,
        auth,
        status_filter,
        leave_type,
        employee_id,
        department_id,
        start_from,
        start_to,
        offset,
        limit,
    )
    return ok(leaves, "Leave applications retrieved")


@router.get("/{application_id}", response_model=Envelope[LeaveResponse])
async def get_leave(application_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> Envelope[LeaveResponse]:
    return ok(await leave_service.get_leave(session, auth, application_id), "Leave application retrieved")


@router.patch("/{application_id}", response_model=Envelope[LeaveResponse])
async def update_leave(
    application_id: uuid.UUID,
    payload: UpdateLeavePayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[LeaveResponse]:
    """Edit a pending application before any approver has acted."""
    leave = await leave_service.update_leave(session, auth, application_id, payload)
    return ok(leave, "Leave application updated")


@router.post("/{application_id}/decision", response_model=Envelope[LeaveResponse])
async def decide_step(
    application_id: uuid.UUID,
    payload: DecisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[LeaveResponse]:
    """Approve or reject the current workflow step."""
    leave = await leave_service.act_on_step(session, auth, application_id, payload)
    return ok(leave, f"Step {payload.decision.value}")


@router.post("/{application_id}/cancel", response_model=Envelope[LeaveResponse])
async def cancel_leave(application_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> Envelope[LeaveResponse]:
    return ok(await leave_service.cancel_leave(session, auth, application_id), "Leave application cancelled")
