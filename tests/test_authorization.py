"""Unit tests for the role and relationship predicates."""

from __future__ import annotations

import uuid

import pytest

from leavedesk.exceptions import PermissionDenied
from leavedesk.models.enums import Role
from leavedesk.schemas.auth import AuthContext
from leavedesk.services.authorization import (
    Capability,
    ScopeKind,
    can_act_on_step,
    can_cancel,
    can_manage_balances,
    can_manage_policies,
    can_submit,
    can_update,
    can_view,
    can_view_balances,
    can_view_record,
    can_waive_notice,
    has_capability,
    require,
    view_scope,
)

DEPT_A = uuid.uuid4()
DEPT_B = uuid.uuid4()


def _actor(role: Role, department_id: uuid.UUID | None = DEPT_A) -> AuthContext:
    return AuthContext(user_id=uuid.uuid4(), role=role, department_id=department_id)


# ---------------------------------------------------------------------------
# Capability table
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("role", list(Role))
def test_every_role_can_handle_own_leave(role: Role) -> None:
    actor = _actor(role)
    for capability in (Capability.SUBMIT_OWN, Capability.VIEW_OWN, Capability.UPDATE_OWN, Capability.CANCEL_OWN):
        assert has_capability(actor, capability)


def test_admin_and_manager_share_authority() -> None:
    for role in (Role.ADMIN, Role.MANAGER):
        actor = _actor(role)
        assert can_manage_policies(actor)
        assert can_manage_balances(actor)
        assert has_capability(actor, Capability.OVERRIDE_STEP)


def test_department_head_and_staff_cannot_administer() -> None:
    for role in (Role.DEPARTMENT_HEAD, Role.STAFF):
        actor = _actor(role)
        assert not can_manage_policies(actor)
        assert not can_manage_balances(actor)


def test_require_raises_permission_denied() -> None:
    require(True, "unused")
    with pytest.raises(PermissionDenied, match="nope"):
        require(False, "nope")


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


def test_view_scope_by_role() -> None:
    assert view_scope(_actor(Role.ADMIN)).kind is ScopeKind.ALL
    assert view_scope(_actor(Role.MANAGER)).kind is ScopeKind.ALL
    head_scope = view_scope(_actor(Role.DEPARTMENT_HEAD))
    assert head_scope.kind is ScopeKind.DEPARTMENT
    assert head_scope.department_id == DEPT_A
    assert view_scope(_actor(Role.STAFF)).kind is ScopeKind.OWN


def test_department_head_without_department_sees_only_own() -> None:
    assert view_scope(_actor(Role.DEPARTMENT_HEAD, department_id=None)).kind is ScopeKind.OWN


def test_staff_views_only_own_records() -> None:
    staff = _actor(Role.STAFF)
    assert can_view(staff, staff.user_id, DEPT_A)
    assert not can_view(staff, uuid.uuid4(), DEPT_A)


def test_department_head_views_department_records() -> None:
    head = _actor(Role.DEPARTMENT_HEAD)
    assert can_view_record(head, uuid.uuid4(), DEPT_A)
    assert not can_view_record(head, uuid.uuid4(), DEPT_B)
    assert not can_view_record(head, uuid.uuid4(), None)


def test_balance_visibility_follows_record_visibility() -> None:
    head = _actor(Role.DEPARTMENT_HEAD)
    other = uuid.uuid4()
    assert can_view_balances(head, other, DEPT_A) == can_view_record(head, other, DEPT_A)
    assert can_view_balances(_actor(Role.MANAGER), other, DEPT_B)


# ---------------------------------------------------------------------------
# Submission, update, cancellation
# ---------------------------------------------------------------------------


def test_submit_for_self_always_allowed() -> None:
    staff = _actor(Role.STAFF)
    assert can_submit(staff, staff.user_id, on_behalf_roles=[])


def test_submit_on_behalf_limited_to_configured_roles() -> None:
    employee = uuid.uuid4()
    assert can_submit(_actor(Role.MANAGER), employee, on_behalf_roles=["admin", "manager"])
    assert not can_submit(_actor(Role.DEPARTMENT_HEAD), employee, on_behalf_roles=["admin", "manager"])
    assert not can_submit(_actor(Role.ADMIN), employee, on_behalf_roles=[])


def test_notice_waiver_is_explicit() -> None:
    admin = _actor(Role.ADMIN)
    assert not can_waive_notice(admin, notice_waiver_roles=[])
    assert can_waive_notice(admin, notice_waiver_roles=["admin"])
    assert not can_waive_notice(_actor(Role.STAFF), notice_waiver_roles=["admin"])


def test_update_and_cancel_owner_or_elevated() -> None:
    staff = _actor(Role.STAFF)
    someone_else = uuid.uuid4()
    assert can_update(staff, staff.user_id)
    assert can_cancel(staff, staff.user_id)
    assert not can_update(staff, someone_else)
    assert not can_cancel(staff, someone_else)
    assert not can_cancel(_actor(Role.DEPARTMENT_HEAD), someone_else)
    assert can_update(_actor(Role.ADMIN), someone_else)
    assert can_cancel(_actor(Role.MANAGER), someone_else)


# ---------------------------------------------------------------------------
# Deciding workflow steps
# ---------------------------------------------------------------------------


def test_nobody_decides_own_application() -> None:
    admin = _actor(Role.ADMIN)
    assert not can_act_on_step(
        admin, applicant_id=admin.user_id, department_id=DEPT_A, step_role=Role.ADMIN, step_approver_id=None
    )


def test_admin_and_manager_override_any_step() -> None:
    applicant = uuid.uuid4()
    for role in (Role.ADMIN, Role.MANAGER):
        actor = _actor(role, department_id=None)
        assert can_act_on_step(
            actor,
            applicant_id=applicant,
            department_id=DEPT_B,
            step_role=Role.DEPARTMENT_HEAD,
            step_approver_id=uuid.uuid4(),
        )


def test_department_head_decides_own_department_step() -> None:
    head = _actor(Role.DEPARTMENT_HEAD)
    assert can_act_on_step(
        head,
        applicant_id=uuid.uuid4(),
        department_id=DEPT_A,
        step_role=Role.DEPARTMENT_HEAD,
        step_approver_id=head.user_id,
    )


def test_department_head_cannot_decide_other_department() -> None:
    head = _actor(Role.DEPARTMENT_HEAD)
    assert not can_act_on_step(
        head,
        applicant_id=uuid.uuid4(),
        department_id=DEPT_B,
        step_role=Role.DEPARTMENT_HEAD,
        step_approver_id=None,
    )


def test_department_head_cannot_decide_step_designated_to_someone_else() -> None:
    head = _actor(Role.DEPARTMENT_HEAD)
    assert not can_act_on_step(
        head,
        applicant_id=uuid.uuid4(),
        department_id=DEPT_A,
        step_role=Role.DEPARTMENT_HEAD,
        step_approver_id=uuid.uuid4(),
    )


def test_department_head_cannot_decide_admin_step() -> None:
    head = _actor(Role.DEPARTMENT_HEAD)
    assert not can_act_on_step(
        head, applicant_id=uuid.uuid4(), department_id=DEPT_A, step_role=Role.ADMIN, step_approver_id=None
    )


def test_staff_never_decides() -> None:
    staff = _actor(Role.STAFF)
    assert not can_act_on_step(
        staff,
        applicant_id=uuid.uuid4(),
        department_id=DEPT_A,
        step_role=Role.DEPARTMENT_HEAD,
        step_approver_id=staff.user_id,
    )
