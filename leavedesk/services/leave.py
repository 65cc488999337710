# ruff: noqa: TC003
"""Leave application state machine.

``pending`` moves to exactly one of ``approved``, ``rejected`` or
``cancelled`` and never leaves a terminal state. Every transition claims the
application with a compare-and-swap on its version before touching the
workflow steps or the ledger, so two approvers racing on the same step
cannot both apply their decision.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leavedesk.config import get_settings
from leavedesk.exceptions import (
    ConcurrencyConflict,
    InvalidStateTransition,
    NotFound,
    OverlappingLeave,
    PermissionDenied,
    ValidationError,
    WorkflowOrderViolation,
)
from leavedesk.models.application import ApprovalStep, EmployeeBookingLock, LeaveApplication
from leavedesk.models.base import now_utc
from leavedesk.models.enums import (
    AuditAction,
    AuditEntityType,
    LeavePriority,
    LeaveStatus,
    NotificationEvent,
    Role,
    StepDecision,
    StepStatus,
)
from leavedesk.schemas.leave import ApprovalStepResponse, LeaveListResponse, LeaveResponse
from leavedesk.services import ledger
from leavedesk.services.audit import model_to_audit_dict, write_audit_log
from leavedesk.services.authorization import (
    ScopeKind,
    can_act_on_step,
    can_cancel,
    can_submit,
    can_update,
    can_view,
    can_waive_notice,
    require,
    view_scope,
)
from leavedesk.services.directory import EmployeeInfo, get_directory_service
from leavedesk.services.notification import dispatch
from leavedesk.services.policy import load_policy
from leavedesk.services.versioning import compare_and_swap

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.models.policy import LeavePolicy
    from leavedesk.schemas.auth import AuthContext
    from leavedesk.schemas.leave import DecisionPayload, SubmitLeavePayload, UpdateLeavePayload

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_step_response(step: ApprovalStep) -> ApprovalStepResponse:
    return ApprovalStepResponse(
        order=step.step_order,
        approver_role=Role(step.approver_role),
        approver_id=step.approver_id,
        status=StepStatus(step.status),
        comments=step.comments,
        action_date=step.action_date,
        acted_by=step.acted_by,
    )


def _build_leave_response(application: LeaveApplication, steps: list[ApprovalStep]) -> LeaveResponse:
    """Map an application and its workflow to the response schema."""
    return LeaveResponse(
        id=application.id,
        employee_id=application.employee_id,
        department_id=application.department_id,
        leave_type=application.leave_type,
        start_date=application.start_date,
        end_date=application.end_date,
        total_days=application.total_days,
        reason=application.reason,
        priority=LeavePriority(application.priority),
        status=LeaveStatus(application.status),
        submission_date=application.submission_date,
        submitted_by=application.submitted_by,
        last_modified=application.last_modified,
        modified_by=application.modified_by,
        approval_workflow=[_build_step_response(s) for s in steps],
    )


async def _get_application_or_404(session: AsyncSession, application_id: uuid.UUID) -> LeaveApplication:
    """Fetch an application fresh from the database. Raises 404 if not found."""
    result = await session.execute(
        select(LeaveApplication)
        .where(col(LeaveApplication.id) == application_id)
        .execution_options(populate_existing=True)
    )
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFound(f"Leave application {application_id} not found")
    return application


async def _load_steps(session: AsyncSession, application_id: uuid.UUID) -> list[ApprovalStep]:
    result = await session.execute(
        select(ApprovalStep)
        .where(col(ApprovalStep.application_id) == application_id)
        .order_by(col(ApprovalStep.step_order))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _load_employee(employee_id: uuid.UUID) -> EmployeeInfo:
    employee = await get_directory_service().get_employee(employee_id)
    if employee is None:
        raise NotFound(f"Employee {employee_id} not found")
    return employee


def inclusive_days(start_date: date, end_date: date) -> int:
    return (end_date - start_date).days + 1


def validate_request(
    policy: LeavePolicy,
    start_date: date,
    end_date: date,
    reason: str,
    *,
    today: date,
    waive_notice: bool = False,
) -> int:
    """Check a request against its policy and return the inclusive day count."""
    if not policy.is_active:
        raise ValidationError(f"Leave type '{policy.leave_type}' is not accepting new applications")
    if end_date < start_date:
        raise ValidationError("End date must not be before start date")
    if not reason.strip():
        raise ValidationError("A reason is required")

    total_days = inclusive_days(start_date, end_date)
    if total_days > policy.max_consecutive_days:
        raise ValidationError(
            f"{total_days} consecutive days requested, {policy.leave_type} allows at most "
            f"{policy.max_consecutive_days}"
        )

    lead_days = (start_date - today).days
    if not waive_notice and lead_days < policy.min_advance_notice_days:
        raise ValidationError(
            f"{policy.leave_type} requires {policy.min_advance_notice_days} days notice, "
            f"start date is {lead_days} days away"
        )
    if lead_days > policy.max_advance_booking_days:
        raise ValidationError(
            f"{policy.leave_type} may be booked at most {policy.max_advance_booking_days} days ahead, "
            f"start date is {lead_days} days away"
        )
    return total_days


async def _check_overlap(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_application_id: uuid.UUID | None = None,
) -> None:
    """Raise 409 if a pending or approved application of the employee intersects the range.

    Date ranges are inclusive, so two ranges overlap when
    existing.start_date <= new.end_date AND existing.end_date >= new.start_date.
    """
    query = select(LeaveApplication).where(
        col(LeaveApplication.employee_id) == employee_id,
        col(LeaveApplication.status).in_(ACTIVE_STATUSES),
        col(LeaveApplication.start_date) <= end_date,
        col(LeaveApplication.end_date) >= start_date,
    )
    if exclude_application_id is not None:
        query = query.where(col(LeaveApplication.id) != exclude_application_id)

    existing = (await session.execute(query.limit(1))).scalar_one_or_none()
    if existing is not None:
        raise OverlappingLeave(
            f"Requested dates overlap {existing.status} {existing.leave_type} leave "
            f"from {existing.start_date} to {existing.end_date}"
        )


async def _lock_bookings(session: AsyncSession, employee_id: uuid.UUID) -> None:
    """Claim the employee's booking row for the rest of the transaction.

    The row is inserted on first use and version-bumped by compare-and-swap
    afterwards. A competing submission or update for the same employee loses
    the swap, re-reads and only then runs its overlap check, so it sees the
    application this transaction commits.
    """
    attempts = get_settings().ledger_max_retries
    for attempt in range(1, attempts + 1):
        result = await session.execute(
            select(EmployeeBookingLock)
            .where(col(EmployeeBookingLock.employee_id) == employee_id)
            .execution_options(populate_existing=True)
        )
        lock = result.scalar_one_or_none()
        if lock is None:
            session.add(EmployeeBookingLock(employee_id=employee_id))
            try:
                await session.flush()
            except IntegrityError:
                raise ConcurrencyConflict(
                    f"Leave of employee {employee_id} is being booked concurrently; retry the request"
                ) from None
            return
        if await compare_and_swap(session, EmployeeBookingLock, lock.id, lock.version, {"updated_at": now_utc()}):
            return
        logger.warning("Booking conflict for employee %s (attempt %d/%d)", employee_id, attempt, attempts)

    raise ConcurrencyConflict(f"Leave of employee {employee_id} is being booked concurrently; retry the request")


@dataclass(frozen=True)
class PlannedStep:
    order: int
    approver_role: Role
    approver_id: uuid.UUID | None = None


async def build_workflow(applicant: EmployeeInfo) -> list[PlannedStep]:
    """Approval chain for an applicant.

    Staff go through their department head (when the department has one on
    record) and then an admin; everybody else goes straight to an admin.
    """
    roles: list[tuple[Role, uuid.UUID | None]] = []
    if applicant.role == Role.STAFF and applicant.department_id is not None:
        department = await get_directory_service().get_department(applicant.department_id)
        if department is not None and department.head_id is not None and department.head_id != applicant.id:
            roles.append((Role.DEPARTMENT_HEAD, department.head_id))
    roles.append((Role.ADMIN, None))
    return [PlannedStep(order, role, approver_id) for order, (role, approver_id) in enumerate(roles, start=1)]


def select_step(steps: list[ApprovalStep], step_order: int | None) -> ApprovalStep:
    """Return the step to decide: the lowest-order pending one.

    When the caller names a step, it must be that one.
    """
    current = next((s for s in steps if s.status == StepStatus.PENDING), None)
    if step_order is None:
        if current is None:
            raise InvalidStateTransition("Workflow has no pending step")
        return current

    target = next((s for s in steps if s.step_order == step_order), None)
    if target is None:
        raise ValidationError(f"Workflow has no step {step_order}")
    if target.status != StepStatus.PENDING:
        raise InvalidStateTransition(f"Step {step_order} is already {target.status}")
    if current is None or target.step_order != current.step_order:
        raise WorkflowOrderViolation(
            f"Step {step_order} cannot be decided before step {current.step_order if current else '?'}"
        )
    return target


async def _claim(
    session: AsyncSession,
    application: LeaveApplication,
    actor_id: uuid.UUID,
    values: dict[str, Any],
) -> bool:
    """Compare-and-swap the application forward one version."""
    return await compare_and_swap(
        session,
        LeaveApplication,
        application.id,
        application.version,
        {**values, "last_modified": now_utc(), "modified_by": actor_id},
    )


def _notification_payload(application: LeaveApplication, status: LeaveStatus) -> dict[str, Any]:
    return {
        "application_id": str(application.id),
        "employee_id": str(application.employee_id),
        "leave_type": application.leave_type,
        "start_date": application.start_date.isoformat(),
        "end_date": application.end_date.isoformat(),
        "total_days": application.total_days,
        "status": status.value,
    }


def _step_recipient(step: ApprovalStep) -> str:
    return str(step.approver_id) if step.approver_id is not None else step.approver_role


async def _respond(session: AsyncSession, application_id: uuid.UUID) -> LeaveResponse:
    application = await _get_application_or_404(session, application_id)
    return _build_leave_response(application, await _load_steps(session, application_id))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_leave(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitLeavePayload,
) -> LeaveResponse:
    """Submit a leave application and reserve its days.

    Flow:
    1. Resolve the applicant and check the actor may file for them
    2. Validate dates, notice and length against the policy
    3. Lock the employee's bookings, then reject overlaps with pending or approved leave
    4. Create the application and its approval workflow
    5. Reserve the days in the ledger year of the start date
    6. Audit, commit, then notify the first approver
    """
    settings = get_settings()
    employee_id = payload.employee_id or auth.user_id
    require(
        can_submit(auth, employee_id, settings.on_behalf_roles),
        "Not authorized to submit leave for another employee",
    )
    applicant = await _load_employee(employee_id)

    policy = await load_policy(session, payload.leave_type)
    total_days = validate_request(
        policy,
        payload.start_date,
        payload.end_date,
        payload.reason,
        today=date.today(),
        waive_notice=can_waive_notice(auth, settings.notice_waiver_roles),
    )

    try:
        await _lock_bookings(session, employee_id)
        await _check_overlap(session, employee_id, payload.start_date, payload.end_date)

        application = LeaveApplication(
            employee_id=employee_id,
            department_id=applicant.department_id,
            leave_type=policy.leave_type,
            start_date=payload.start_date,
            end_date=payload.end_date,
            total_days=total_days,
            ledger_year=payload.start_date.year,
            reason=payload.reason.strip(),
            priority=payload.priority.value,
            status=LeaveStatus.PENDING.value,
            submitted_by=auth.user_id,
        )
        session.add(application)
        await session.flush()

        steps = [
            ApprovalStep(
                application_id=application.id,
                step_order=planned.order,
                approver_role=planned.approver_role.value,
                approver_id=planned.approver_id,
            )
            for planned in await build_workflow(applicant)
        ]
        session.add_all(steps)
        await session.flush()

        await ledger.reserve(
            session,
            employee_id,
            policy.leave_type,
            application.ledger_year,
            total_days,
            f"Reserved for application {application.id}",
            application_id=application.id,
        )

        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.APPLICATION,
            entity_id=application.id,
            action=AuditAction.SUBMIT,
            after_json=model_to_audit_dict(application),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Leave application %s submitted for %s: %s %s..%s (%d days)",
        application.id,
        employee_id,
        policy.leave_type,
        payload.start_date,
        payload.end_date,
        total_days,
    )
    await dispatch(
        NotificationEvent.LEAVE_SUBMITTED,
        _step_recipient(steps[0]),
        _notification_payload(application, LeaveStatus.PENDING),
    )
    return await _respond(session, application.id)


async def update_leave(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: UpdateLeavePayload,
) -> LeaveResponse:
    """Change a pending application whose workflow nobody has acted on yet.

    The old reservation is released and the new one taken in the same
    transaction; any failure leaves the application and ledger as they were.
    """
    settings = get_settings()
    attempts = settings.ledger_max_retries
    for attempt in range(1, attempts + 1):
        application = await _get_application_or_404(session, application_id)
        require(can_update(auth, application.employee_id), "Not authorized to update this application")
        if application.status != LeaveStatus.PENDING:
            raise InvalidStateTransition(f"Only pending applications can be updated, this one is {application.status}")
        steps = await _load_steps(session, application_id)
        if any(s.status != StepStatus.PENDING for s in steps):
            raise InvalidStateTransition("Application can no longer be updated once a workflow step is decided")

        leave_type = payload.leave_type or application.leave_type
        start_date = payload.start_date or application.start_date
        end_date = payload.end_date or application.end_date
        reason = payload.reason if payload.reason is not None else application.reason
        priority = payload.priority.value if payload.priority is not None else application.priority

        policy = await load_policy(session, leave_type)
        total_days = validate_request(
            policy,
            start_date,
            end_date,
            reason,
            today=date.today(),
            waive_notice=can_waive_notice(auth, settings.notice_waiver_roles),
        )
        before_dict = model_to_audit_dict(application)
        old_leave_type, old_year, old_days = application.leave_type, application.ledger_year, application.total_days
        values = {
            "leave_type": policy.leave_type,
            "start_date": start_date,
            "end_date": end_date,
            "total_days": total_days,
            "ledger_year": start_date.year,
            "reason": reason.strip(),
            "priority": priority,
        }

        try:
            await _lock_bookings(session, application.employee_id)
            await _check_overlap(session, application.employee_id, start_date, end_date, application.id)

            if not await _claim(session, application, auth.user_id, values):
                logger.warning(
                    "Application %s changed during update (attempt %d/%d)", application_id, attempt, attempts
                )
                continue

            await ledger.release(
                session,
                application.employee_id,
                old_leave_type,
                old_year,
                old_days,
                f"Released for update of application {application_id}",
                application_id=application_id,
            )
            await ledger.reserve(
                session,
                application.employee_id,
                policy.leave_type,
                start_date.year,
                total_days,
                f"Reserved for application {application_id}",
                application_id=application_id,
            )

            updated = await _get_application_or_404(session, application_id)
            await write_audit_log(
                session,
                actor_id=auth.user_id,
                entity_type=AuditEntityType.APPLICATION,
                entity_id=application_id,
                action=AuditAction.UPDATE,
                before_json=before_dict,
                after_json=model_to_audit_dict(updated),
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        return await _respond(session, application_id)

    raise ConcurrencyConflict(f"Application {application_id} is being modified concurrently; retry the request")


async def act_on_step(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: DecisionPayload,
) -> LeaveResponse:
    """Record an approver's decision on the current workflow step.

    Rejection ends the application and releases its days. Approving the last
    step ends it as approved and consumes the days. Approving any other step
    only advances the workflow.
    """
    attempts = get_settings().ledger_max_retries
    # Retries decide the step first selected or nothing.
    target_order = payload.step_order
    for attempt in range(1, attempts + 1):
        application = await _get_application_or_404(session, application_id)
        if application.status != LeaveStatus.PENDING:
            raise InvalidStateTransition(f"Application is already {application.status}")

        steps = await _load_steps(session, application_id)
        step = select_step(steps, target_order)
        target_order = step.step_order
        require(
            can_act_on_step(
                auth,
                applicant_id=application.employee_id,
                department_id=application.department_id,
                step_role=Role(step.approver_role),
                step_approver_id=step.approver_id,
            ),
            f"Not authorized to decide step {step.step_order} ({step.approver_role})",
        )

        is_last = step.step_order == steps[-1].step_order
        if payload.decision == StepDecision.REJECTED:
            new_status = LeaveStatus.REJECTED
        elif is_last:
            new_status = LeaveStatus.APPROVED
        else:
            new_status = LeaveStatus.PENDING

        before_dict = model_to_audit_dict(application)
        try:
            if not await _claim(session, application, auth.user_id, {"status": new_status.value}):
                logger.warning(
                    "Application %s changed during decision (attempt %d/%d)", application_id, attempt, attempts
                )
                continue

            step.status = StepStatus(payload.decision.value).value
            step.comments = payload.comments
            step.action_date = now_utc()
            step.acted_by = auth.user_id
            session.add(step)
            await session.flush()

            if new_status == LeaveStatus.REJECTED:
                await ledger.release(
                    session,
                    application.employee_id,
                    application.leave_type,
                    application.ledger_year,
                    application.total_days,
                    f"Application {application_id} rejected",
                    application_id=application_id,
                )
            elif new_status == LeaveStatus.APPROVED:
                await ledger.consume(
                    session,
                    application.employee_id,
                    application.leave_type,
                    application.ledger_year,
                    application.total_days,
                    f"Application {application_id} approved",
                    application_id=application_id,
                )

            updated = await _get_application_or_404(session, application_id)
            await write_audit_log(
                session,
                actor_id=auth.user_id,
                entity_type=AuditEntityType.APPLICATION,
                entity_id=application_id,
                action=AuditAction.REJECT if payload.decision == StepDecision.REJECTED else AuditAction.APPROVE,
                before_json=before_dict,
                after_json={**model_to_audit_dict(updated), "step_order": step.step_order},
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

        logger.info(
            "Step %d of application %s %s by %s",
            step.step_order,
            application_id,
            payload.decision.value,
            auth.user_id,
        )
        notice = _notification_payload(updated, new_status)
        if new_status == LeaveStatus.REJECTED:
            await dispatch(NotificationEvent.LEAVE_REJECTED, str(updated.employee_id), notice)
        elif new_status == LeaveStatus.APPROVED:
            await dispatch(NotificationEvent.LEAVE_APPROVED, str(updated.employee_id), notice)
        else:
            next_step = steps[steps.index(step) + 1]
            await dispatch(NotificationEvent.LEAVE_STEP_APPROVED, _step_recipient(next_step), notice)
        return await _respond(session, application_id)

    raise ConcurrencyConflict(f"Application {application_id} is being decided concurrently; retry the request")


async def cancel_leave(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
) -> LeaveResponse:
    """Cancel a pending application and release its days.

    The employee the leave is for or an admin/manager can cancel.
    """
    attempts = get_settings().ledger_max_retries
    for attempt in range(1, attempts + 1):
        application = await _get_application_or_404(session, application_id)
        require(can_cancel(auth, application.employee_id), "Not authorized to cancel this application")
        if application.status != LeaveStatus.PENDING:
            raise InvalidStateTransition(
                f"Only pending applications can be cancelled, this one is {application.status}"
            )

        before_dict = model_to_audit_dict(application)
        try:
            if not await _claim(session, application, auth.user_id, {"status": LeaveStatus.CANCELLED.value}):
                logger.warning(
                    "Application %s changed during cancel (attempt %d/%d)", application_id, attempt, attempts
                )
                continue

            await ledger.release(
                session,
                application.employee_id,
                application.leave_type,
                application.ledger_year,
                application.total_days,
                f"Application {application_id} cancelled",
                application_id=application_id,
            )

            updated = await _get_application_or_404(session, application_id)
            await write_audit_log(
                session,
                actor_id=auth.user_id,
                entity_type=AuditEntityType.APPLICATION,
                entity_id=application_id,
                action=AuditAction.CANCEL,
                before_json=before_dict,
                after_json=model_to_audit_dict(updated),
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        return await _respond(session, application_id)

    raise ConcurrencyConflict(f"Application {application_id} is being modified concurrently; retry the request")


async def get_leave(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
) -> LeaveResponse:
    """Get a single application the actor is allowed to see."""
    application = await _get_application_or_404(session, application_id)
    require(
        can_view(auth, application.employee_id, application.department_id),
        "Not authorized to view this application",
    )
    return _build_leave_response(application, await _load_steps(session, application_id))


async def list_leaves(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: LeaveStatus | None = None,
    leave_type: str | None = None,
    employee_id: uuid.UUID | None = None,
    department_id: uuid.UUID | None = None,
    start_from: date | None = None,
    start_to: date | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveListResponse:
    """List applications within the actor's view scope, newest submission first.

    Filtering on an employee or department outside that scope is refused,
    not answered with an empty page.
    """
    filters: list[Any] = []

    scope = view_scope(auth)
    if scope.kind is ScopeKind.OWN:
        filters.append(col(LeaveApplication.employee_id) == auth.user_id)
    elif scope.kind is ScopeKind.DEPARTMENT:
        filters.append(
            or_(
                col(LeaveApplication.department_id) == scope.department_id,
                col(LeaveApplication.employee_id) == auth.user_id,
            )
        )

    if employee_id is not None:
        if employee_id != auth.user_id:
            employee = await get_directory_service().get_employee(employee_id)
            department = employee.department_id if employee is not None else None
            if not can_view(auth, employee_id, department):
                raise PermissionDenied("Not authorized to view this employee's applications")
        filters.append(col(LeaveApplication.employee_id) == employee_id)
    if department_id is not None:
        if scope.kind is not ScopeKind.ALL and department_id != auth.department_id:
            raise PermissionDenied("Not authorized to view another department's applications")
        filters.append(col(LeaveApplication.department_id) == department_id)
    if status_filter is not None:
        filters.append(col(LeaveApplication.status) == status_filter.value)
    if leave_type is not None:
        filters.append(col(LeaveApplication.leave_type) == leave_type)
    if start_from is not None:
        filters.append(col(LeaveApplication.start_date) >= start_from)
    if start_to is not None:
        filters.append(col(LeaveApplication.start_date) <= start_to)

    count_result = await session.execute(select(func.count()).select_from(LeaveApplication).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveApplication)
        .where(*filters)
        .order_by(col(LeaveApplication.submission_date).desc())
        .offset(offset)
        .limit(limit)
    )
    applications = list(result.scalars().all())

    steps_by_application: dict[uuid.UUID, list[ApprovalStep]] = defaultdict(list)
    if applications:
        step_result = await session.execute(
            select(ApprovalStep)
            .where(col(ApprovalStep.application_id).in_([a.id for a in applications]))
            .order_by(col(ApprovalStep.step_order))
        )
        for step in step_result.scalars().all():
            steps_by_application[step.application_id].append(step)

    return LeaveListResponse(
        items=[_build_leave_response(a, steps_by_application[a.id]) for a in applications],
        total=total,
    )
