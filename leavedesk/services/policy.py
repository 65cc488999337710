from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leavedesk.config import get_settings
from leavedesk.exceptions import PolicyNotFound, ValidationError
from leavedesk.models.base import now_utc
from leavedesk.models.enums import AuditAction, AuditEntityType
from leavedesk.models.policy import LeavePolicy
from leavedesk.schemas.policy import PolicyListResponse, PolicyResponse
from leavedesk.services.audit import model_to_audit_dict, write_audit_log
from leavedesk.services.authorization import can_manage_policies, require

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.schemas.auth import AuthContext
    from leavedesk.schemas.policy import PolicyUpsertPayload


def build_policy_response(policy: LeavePolicy) -> PolicyResponse:
    """Map a policy model to its response schema."""
    return PolicyResponse(
        id=policy.id,
        leave_type=policy.leave_type,
        description=policy.description,
        default_allocation=policy.default_allocation,
        max_consecutive_days=policy.max_consecutive_days,
        min_advance_notice_days=policy.min_advance_notice_days,
        max_advance_booking_days=policy.max_advance_booking_days,
        allow_carry_forward=policy.allow_carry_forward,
        carry_forward_limit=policy.carry_forward_limit,
        is_active=policy.is_active,
        created_at=policy.created_at,
        updated_at=policy.updated_at,
    )


async def find_policy(session: AsyncSession, leave_type: str) -> LeavePolicy | None:
    result = await session.execute(select(LeavePolicy).where(col(LeavePolicy.leave_type) == leave_type))
    return result.scalar_one_or_none()


async def load_policy(session: AsyncSession, leave_type: str) -> LeavePolicy:
    """Fetch a policy model by leave type. Raises PolicyNotFound."""
    policy = await find_policy(session, leave_type)
    if policy is None:
        raise PolicyNotFound(leave_type)
    return policy


async def get_policy(session: AsyncSession, leave_type: str) -> PolicyResponse:
    return build_policy_response(await load_policy(session, leave_type))


async def list_policies(
    session: AsyncSession,
    include_inactive: bool = False,
    offset: int = 0,
    limit: int = 50,
) -> PolicyListResponse:
    """List policies ordered by leave type; inactive ones only on request."""
    filters = [] if include_inactive else [col(LeavePolicy.is_active).is_(True)]

    count_result = await session.execute(select(func.count()).select_from(LeavePolicy).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeavePolicy).where(*filters).order_by(col(LeavePolicy.leave_type)).offset(offset).limit(limit)
    )
    return PolicyListResponse(
        items=[build_policy_response(p) for p in result.scalars().all()],
        total=total,
    )


async def list_active_policies(session: AsyncSession) -> list[LeavePolicy]:
    result = await session.execute(
        select(LeavePolicy).where(col(LeavePolicy.is_active).is_(True)).order_by(col(LeavePolicy.leave_type))
    )
    return list(result.scalars().all())


async def upsert_policy(
    session: AsyncSession,
    auth: AuthContext,
    leave_type: str,
    payload: PolicyUpsertPayload,
) -> PolicyResponse:
    """Create the policy for ``leave_type`` or replace its rules.

    Applications already in flight keep the day count and ledger year they
    were submitted with, so edits only affect future submissions.
    """
    require(can_manage_policies(auth), "Only admins and managers can manage leave policies")
    if leave_type == get_settings().annual_quota_leave_type:
        raise ValidationError(f"'{leave_type}' is reserved for the aggregate annual quota")

    policy = await find_policy(session, leave_type)
    before = model_to_audit_dict(policy) if policy is not None else None

    if policy is None:
        policy = LeavePolicy(leave_type=leave_type, **payload.model_dump())
        session.add(policy)
        action = AuditAction.CREATE
    else:
        for field, value in payload.model_dump().items():
            setattr(policy, field, value)
        policy.updated_at = now_utc()
        action = AuditAction.UPDATE

    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy.id,
        action=action,
        before_json=before,
        after_json=model_to_audit_dict(policy),
    )

    await session.commit()
    await session.refresh(policy)
    return build_policy_response(policy)


async def deactivate_policy(session: AsyncSession, auth: AuthContext, leave_type: str) -> PolicyResponse:
    """Soft-delete a policy: new applications are refused, in-flight ones proceed."""
    require(can_manage_policies(auth), "Only admins and managers can manage leave policies")

    policy = await load_policy(session, leave_type)
    before = model_to_audit_dict(policy)
    policy.is_active = False
    policy.updated_at = now_utc()
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy.id,
        action=AuditAction.DEACTIVATE,
        before_json=before,
        after_json=model_to_audit_dict(policy),
    )

    await session.commit()
    await session.refresh(policy)
    return build_policy_response(policy)
