"""initial leave schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "leave_policy",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("leave_type", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("default_allocation", sa.Integer(), nullable=False),
        sa.Column("max_consecutive_days", sa.Integer(), nullable=False),
        sa.Column("min_advance_notice_days", sa.Integer(), nullable=False),
        sa.Column("max_advance_booking_days", sa.Integer(), nullable=False),
        sa.Column("allow_carry_forward", sa.Boolean(), nullable=False),
        sa.Column("carry_forward_limit", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("leave_type", name="uq_policy_leave_type"),
    )
    op.create_index("ix_leave_policy_leave_type", "leave_policy", ["leave_type"])

    op.create_table(
        "leave_balance",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type", sa.String(length=100), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("total_allocated", sa.Integer(), nullable=False),
        sa.Column("used", sa.Integer(), nullable=False),
        sa.Column("pending", sa.Integer(), nullable=False),
        sa.Column("carried_forward", sa.Integer(), nullable=False),
        sa.Column("remaining", sa.Integer(), nullable=False),
        sa.Column("transaction_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("updated_at"),
        _timestamp("created_at"),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.UniqueConstraint("employee_id", "leave_type", "year", name="uq_balance_employee_type_year"),
        sa.CheckConstraint(
            "remaining = total_allocated + carried_forward - used - pending",
            name="ck_balance_remaining",
        ),
        sa.CheckConstraint(
            "total_allocated >= 0 AND carried_forward >= 0 AND used >= 0 AND pending >= 0 AND remaining >= 0",
            name="ck_balance_non_negative",
        ),
    )
    op.create_index("ix_leave_balance_employee_id", "leave_balance", ["employee_id"])

    op.create_table(
        "leave_transaction",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("balance_id", sa.Uuid(), sa.ForeignKey("leave_balance.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entry_no", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type", sa.String(length=100), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(length=50), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("application_id", sa.Uuid(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("balance_id", "entry_no", name="uq_transaction_balance_entry"),
    )
    op.create_index("ix_leave_transaction_balance_id", "leave_transaction", ["balance_id"])
    op.create_index("ix_leave_transaction_application_id", "leave_transaction", ["application_id"])
    op.create_index("ix_transaction_employee_type_year", "leave_transaction", ["employee_id", "leave_type", "year"])

    op.create_table(
        "leave_application",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column("leave_type", sa.String(length=100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False),
        sa.Column("ledger_year", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=2000), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("submission_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted_by", sa.Uuid(), nullable=False),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_by", sa.Uuid(), nullable=True),
        _timestamp("created_at"),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
    )
    op.create_index("ix_leave_application_employee_id", "leave_application", ["employee_id"])
    op.create_index("ix_leave_application_status", "leave_application", ["status"])
    op.create_index("ix_application_employee_status", "leave_application", ["employee_id", "status"])
    op.create_index("ix_application_department_status", "leave_application", ["department_id", "status"])

    op.create_table(
        "leave_approval_step",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "application_id", sa.Uuid(), sa.ForeignKey("leave_application.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("approver_role", sa.String(length=50), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("comments", sa.String(length=2000), nullable=True),
        sa.Column("action_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acted_by", sa.Uuid(), nullable=True),
        sa.UniqueConstraint("application_id", "step_order", name="uq_step_application_order"),
    )
    op.create_index("ix_leave_approval_step_application_id", "leave_approval_step", ["application_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("leave_approval_step")
    op.drop_table("leave_application")
    op.drop_table("leave_transaction")
    op.drop_table("leave_balance")
    op.drop_table("leave_policy")
