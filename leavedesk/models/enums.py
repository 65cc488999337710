from __future__ import annotations

import enum


class Role(enum.StrEnum):
    """Directory roles, most to least privileged."""

    ADMIN = "admin"
    MANAGER = "manager"
    DEPARTMENT_HEAD = "department_head"
    STAFF = "staff"


class LeaveStatus(enum.StrEnum):
    """State machine for leave applications."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not LeaveStatus.PENDING


class StepStatus(enum.StrEnum):
    """Status of a single approval workflow step."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StepDecision(enum.StrEnum):
    """Decision an approver can record on a step."""

    APPROVED = "approved"
    REJECTED = "rejected"


class LeavePriority(enum.StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class TransactionType(enum.StrEnum):
    """Type of ledger transaction affecting a balance."""

    ALLOCATED = "allocated"
    RESERVED = "reserved"
    CONSUMED = "consumed"
    RELEASED = "released"
    CARRIED = "carried"
    ADJUSTED = "adjusted"


class NotificationEvent(enum.StrEnum):
    """Events sent to the notification collaborator."""

    LEAVE_SUBMITTED = "leave.submitted"
    LEAVE_STEP_APPROVED = "leave.step_approved"
    LEAVE_APPROVED = "leave.approved"
    LEAVE_REJECTED = "leave.rejected"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    POLICY = "POLICY"
    BALANCE = "BALANCE"
    APPLICATION = "APPLICATION"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DEACTIVATE = "DEACTIVATE"
    INITIALIZE = "INITIALIZE"
    ADJUST = "ADJUST"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
