# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter, Query

from leavedesk.api.deps import AuthDep
from leavedesk.db import SessionDep
from leavedesk.schemas.common import Envelope, ok
from leavedesk.schemas.policy import PolicyListResponse, PolicyResponse, PolicyUpsertPayload
from leavedesk.services import policy as policy_service

router = APIRouter(prefix="/policies", tags=["policies"])


@router.get("", response_model=Envelope[PolicyListResponse])
async def list_policies(
    session: SessionDep,
    _auth: AuthDep,
    include_inactive: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> Envelope[PolicyListResponse]:
    """List leave policies, active ones only unless asked otherwise."""
    policies = await policy_service.list_policies(session, include_inactive, offset, limit)
    return ok(policies, "Policies retrieved")


@router.get("/{leave_type}", response_model=Envelope[PolicyResponse])
async def get_policy(leave_type: str, session: SessionDep, _auth: AuthDep) -> Envelope[PolicyResponse]:
    return ok(await policy_service.get_policy(session, leave_type), "Policy retrieved")


@router.put("/{leave_type}", response_model=Envelope[PolicyResponse])
async def upsert_policy(
    leave_type: str,
    payload: PolicyUpsertPayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[PolicyResponse]:
    """Create or replace the policy for a leave type (admin or manager)."""
    policy = await policy_service.upsert_policy(session, auth, leave_type, payload)
    return ok(policy, "Policy saved")


@router.delete("/{leave_type}", response_model=Envelope[PolicyResponse])
async def deactivate_policy(leave_type: str, session: SessionDep, auth: AuthDep) -> Envelope[PolicyResponse]:
    """Stop accepting new applications for a leave type; in-flight ones continue."""
    policy = await policy_service.deactivate_policy(session, auth, leave_type)
    return ok(policy, "Policy deactivated")
