"""Workflow authorization gate.

Pure, table-driven predicates over (role, relationship to the record,
action). Nothing here touches storage: callers pass in the facts about the
record and either branch on the boolean or call :func:`require`, which raises
:class:`PermissionDenied`.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leavedesk.exceptions import PermissionDenied
from leavedesk.models.enums import Role

if TYPE_CHECKING:
    import uuid

    from leavedesk.schemas.auth import AuthContext


class Capability(enum.StrEnum):
    SUBMIT_OWN = "submit_own"
    VIEW_OWN = "view_own"
    VIEW_DEPARTMENT = "view_department"
    VIEW_ALL = "view_all"
    UPDATE_OWN = "update_own"
    UPDATE_ANY = "update_any"
    CANCEL_OWN = "cancel_own"
    CANCEL_ANY = "cancel_any"
    DECIDE_DEPARTMENT_STEP = "decide_department_step"
    OVERRIDE_STEP = "override_step"
    MANAGE_POLICIES = "manage_policies"
    MANAGE_BALANCES = "manage_balances"


_BASE = frozenset(
    {
        Capability.SUBMIT_OWN,
        Capability.VIEW_OWN,
        Capability.UPDATE_OWN,
        Capability.CANCEL_OWN,
    }
)

_ELEVATED = _BASE | {
    Capability.VIEW_ALL,
    Capability.UPDATE_ANY,
    Capability.CANCEL_ANY,
    Capability.OVERRIDE_STEP,
    Capability.MANAGE_POLICIES,
    Capability.MANAGE_BALANCES,
}

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: _ELEVATED,
    Role.MANAGER: _ELEVATED,
    Role.DEPARTMENT_HEAD: _BASE | {Capability.VIEW_DEPARTMENT, Capability.DECIDE_DEPARTMENT_STEP},
    Role.STAFF: _BASE,
}


def has_capability(actor: AuthContext, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(actor.role, frozenset())


def require(allowed: bool, message: str) -> None:
    """Raise PermissionDenied unless ``allowed``."""
    if not allowed:
        raise PermissionDenied(message)


class ScopeKind(enum.StrEnum):
    ALL = "all"
    DEPARTMENT = "department"
    OWN = "own"


@dataclass(frozen=True)
class ViewScope:
    """Which records a listing may return for an actor."""

    kind: ScopeKind
    user_id: uuid.UUID
    department_id: uuid.UUID | None = None


def view_scope(actor: AuthContext) -> ViewScope:
    if has_capability(actor, Capability.VIEW_ALL):
        return ViewScope(ScopeKind.ALL, actor.user_id)
    if has_capability(actor, Capability.VIEW_DEPARTMENT) and actor.department_id is not None:
        return ViewScope(ScopeKind.DEPARTMENT, actor.user_id, actor.department_id)
    return ViewScope(ScopeKind.OWN, actor.user_id)


def _same_department(actor: AuthContext, department_id: uuid.UUID | None) -> bool:
    return department_id is not None and actor.department_id == department_id


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def can_view_record(actor: AuthContext, owner_id: uuid.UUID, department_id: uuid.UUID | None) -> bool:
    """Owner/department scoped visibility for any employee-owned record."""
    if actor.user_id == owner_id:
        return has_capability(actor, Capability.VIEW_OWN)
    if has_capability(actor, Capability.VIEW_ALL):
        return True
    return has_capability(actor, Capability.VIEW_DEPARTMENT) and _same_department(actor, department_id)


def can_view(actor: AuthContext, employee_id: uuid.UUID, department_id: uuid.UUID | None) -> bool:
    return can_view_record(actor, employee_id, department_id)


def can_submit(actor: AuthContext, employee_id: uuid.UUID, on_behalf_roles: Iterable[str]) -> bool:
    if actor.user_id == employee_id:
        return has_capability(actor, Capability.SUBMIT_OWN)
    return actor.role.value in set(on_behalf_roles)


def can_waive_notice(actor: AuthContext, notice_waiver_roles: Iterable[str]) -> bool:
    return actor.role.value in set(notice_waiver_roles)


def can_update(actor: AuthContext, employee_id: uuid.UUID) -> bool:
    if actor.user_id == employee_id and has_capability(actor, Capability.UPDATE_OWN):
        return True
    return has_capability(actor, Capability.UPDATE_ANY)


def can_cancel(actor: AuthContext, employee_id: uuid.UUID) -> bool:
    if actor.user_id == employee_id and has_capability(actor, Capability.CANCEL_OWN):
        return True
    return has_capability(actor, Capability.CANCEL_ANY)


def can_act_on_step(
    actor: AuthContext,
    *,
    applicant_id: uuid.UUID,
    department_id: uuid.UUID | None,
    step_role: Role,
    step_approver_id: uuid.UUID | None,
) -> bool:
    """Whether ``actor`` may decide a workflow step.

    Nobody decides a step on their own application. Admins and managers may
    override any step. A department head decides only department_head steps
    of their own department, and only when the step is not designated to
    somebody else.
    """
    if actor.user_id == applicant_id:
        return False
    if has_capability(actor, Capability.OVERRIDE_STEP):
        return True
    if step_role == Role.DEPARTMENT_HEAD and has_capability(actor, Capability.DECIDE_DEPARTMENT_STEP):
        if step_approver_id is not None and step_approver_id != actor.user_id:
            return False
        return _same_department(actor, department_id)
    return False


def can_manage_policies(actor: AuthContext) -> bool:
    return has_capability(actor, Capability.MANAGE_POLICIES)


def can_manage_balances(actor: AuthContext) -> bool:
    return has_capability(actor, Capability.MANAGE_BALANCES)


def can_view_balances(actor: AuthContext, employee_id: uuid.UUID, department_id: uuid.UUID | None) -> bool:
    return can_view_record(actor, employee_id, department_id)
