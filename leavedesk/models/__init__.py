from sqlmodel import SQLModel

from leavedesk.models.application import ApprovalStep, EmployeeBookingLock, LeaveApplication
from leavedesk.models.audit import AuditLog
from leavedesk.models.balance import LeaveBalance
from leavedesk.models.base import TimestampMixin, UUIDBase, VersionedMixin
from leavedesk.models.enums import (
    AuditAction,
    AuditEntityType,
    LeavePriority,
    LeaveStatus,
    NotificationEvent,
    Role,
    StepDecision,
    StepStatus,
    TransactionType,
)
from leavedesk.models.ledger import LeaveTransaction
from leavedesk.models.policy import LeavePolicy

__all__ = [
    "ApprovalStep",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "EmployeeBookingLock",
    "LeaveApplication",
    "LeaveBalance",
    "LeavePolicy",
    "LeavePriority",
    "LeaveStatus",
    "LeaveTransaction",
    "NotificationEvent",
    "Role",
    "SQLModel",
    "StepDecision",
    "StepStatus",
    "TimestampMixin",
    "TransactionType",
    "UUIDBase",
    "VersionedMixin",
]
