"""Balance ledger: per (employee, leave type, year) entitlement accounting.

Every mutation follows the same shape: read the balance row and its version,
plan the new totals plus the transactions that explain them as a pure
computation, then persist both with a compare-and-swap on the version. A lost
race re-reads and re-plans, so a reservation that no longer fits fails with
InsufficientBalance instead of overdrawing the balance.

Ledger operations join the caller's transaction and never commit; the
administrative entry points at the bottom of the module own their commits.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leavedesk.config import get_settings
from leavedesk.exceptions import (
    AlreadyInitialized,
    ConcurrencyConflict,
    InsufficientBalance,
    InvalidLedgerState,
    NotFound,
    ValidationError,
)
from leavedesk.models.balance import LeaveBalance
from leavedesk.models.base import now_utc
from leavedesk.models.enums import AuditAction, AuditEntityType, TransactionType
from leavedesk.models.ledger import LeaveTransaction
from leavedesk.schemas.balance import (
    BalanceListResponse,
    BalanceResponse,
    InitializeYearResponse,
    TransactionListResponse,
    TransactionResponse,
)
from leavedesk.services.audit import model_to_audit_dict, write_audit_log
from leavedesk.services.authorization import (
    ScopeKind,
    can_manage_balances,
    can_view_balances,
    require,
    view_scope,
)
from leavedesk.services.directory import get_directory_service
from leavedesk.services.policy import list_active_policies, load_policy
from leavedesk.services.versioning import compare_and_swap

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.models.policy import LeavePolicy
    from leavedesk.schemas.auth import AuthContext
    from leavedesk.schemas.balance import AdjustmentPayload, InitializeYearPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure planning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceKey:
    employee_id: uuid.UUID
    leave_type: str
    year: int

    def __str__(self) -> str:
        return f"{self.employee_id}/{self.leave_type}/{self.year}"


@dataclass(frozen=True)
class BalanceTotals:
    total_allocated: int = 0
    carried_forward: int = 0
    used: int = 0
    pending: int = 0

    @property
    def remaining(self) -> int:
        return self.total_allocated + self.carried_forward - self.used - self.pending

    def is_consistent(self) -> bool:
        return min(self.total_allocated, self.carried_forward, self.used, self.pending, self.remaining) >= 0

    def as_values(self) -> dict[str, int]:
        return {
            "total_allocated": self.total_allocated,
            "carried_forward": self.carried_forward,
            "used": self.used,
            "pending": self.pending,
            "remaining": self.remaining,
        }


@dataclass(frozen=True)
class PlannedTransaction:
    transaction_type: TransactionType
    amount: int
    description: str


@dataclass(frozen=True)
class LedgerChange:
    totals: BalanceTotals
    transactions: list[PlannedTransaction] = field(default_factory=list)


@dataclass(frozen=True)
class BalanceState:
    """A balance row as read, with the version the write must match."""

    id: uuid.UUID
    version: int
    transaction_count: int
    totals: BalanceTotals

    @classmethod
    def from_row(cls, row: LeaveBalance) -> BalanceState:
        return cls(
            id=row.id,
            version=row.version,
            transaction_count=row.transaction_count,
            totals=BalanceTotals(
                total_allocated=row.total_allocated,
                carried_forward=row.carried_forward,
                used=row.used,
                pending=row.pending,
            ),
        )


Planner = Callable[[BalanceTotals], LedgerChange]


def _require_positive_days(days: int) -> None:
    if days <= 0:
        raise ValidationError(f"Day count must be positive, got {days}")


def plan_reserve(leave_type: str, days: int, description: str) -> Planner:
    def _plan(totals: BalanceTotals) -> LedgerChange:
        if days > totals.remaining:
            raise InsufficientBalance(leave_type, days, totals.remaining)
        return LedgerChange(
            replace(totals, pending=totals.pending + days),
            [PlannedTransaction(TransactionType.RESERVED, days, description)],
        )

    return _plan


def plan_consume(key: BalanceKey, days: int, description: str) -> Planner:
    def _plan(totals: BalanceTotals) -> LedgerChange:
        if totals.pending < days:
            raise InvalidLedgerState(f"Cannot consume {days} days on {key}: only {totals.pending} pending")
        return LedgerChange(
            replace(totals, pending=totals.pending - days, used=totals.used + days),
            [PlannedTransaction(TransactionType.CONSUMED, days, description)],
        )

    return _plan


def plan_release(key: BalanceKey, days: int, description: str) -> Planner:
    def _plan(totals: BalanceTotals) -> LedgerChange:
        if totals.pending < days:
            raise InvalidLedgerState(f"Cannot release {days} days on {key}: only {totals.pending} pending")
        return LedgerChange(
            replace(totals, pending=totals.pending - days),
            [PlannedTransaction(TransactionType.RELEASED, days, description)],
        )

    return _plan


def plan_reinitialize(key: BalanceKey, allocation: int, carried_forward: int) -> Planner:
    def _plan(totals: BalanceTotals) -> LedgerChange:
        new_totals = replace(totals, total_allocated=allocation, carried_forward=carried_forward)
        if new_totals.remaining < 0:
            raise ValidationError(
                f"Re-initializing {key} would leave {new_totals.remaining} days remaining "
                f"({totals.used} used, {totals.pending} pending)"
            )
        transactions = []
        if allocation != totals.total_allocated:
            transactions.append(
                PlannedTransaction(
                    TransactionType.ALLOCATED,
                    allocation - totals.total_allocated,
                    f"Allocation reset to {allocation} days for {key.year}",
                )
            )
        if carried_forward != totals.carried_forward:
            transactions.append(
                PlannedTransaction(
                    TransactionType.CARRIED,
                    carried_forward - totals.carried_forward,
                    f"Carry-forward reset to {carried_forward} days for {key.year}",
                )
            )
        return LedgerChange(new_totals, transactions)

    return _plan


def plan_adjust(leave_type: str, amount: int, reason: str) -> Planner:
    def _plan(totals: BalanceTotals) -> LedgerChange:
        new_totals = replace(totals, total_allocated=totals.total_allocated + amount)
        if new_totals.total_allocated < 0 or new_totals.remaining < 0:
            raise InsufficientBalance(leave_type, -amount, totals.remaining)
        return LedgerChange(new_totals, [PlannedTransaction(TransactionType.ADJUSTED, amount, reason)])

    return _plan


def opening_transactions(allocation: int, carried_forward: int, year: int) -> list[PlannedTransaction]:
    transactions = [PlannedTransaction(TransactionType.ALLOCATED, allocation, f"Initial allocation for {year}")]
    if carried_forward > 0:
        transactions.append(
            PlannedTransaction(
                TransactionType.CARRIED, carried_forward, f"Carried forward from {year - 1}"
            )
        )
    return transactions


# ---------------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------------


def build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    return BalanceResponse(
        id=balance.id,
        employee_id=balance.employee_id,
        leave_type=balance.leave_type,
        year=balance.year,
        total_allocated=balance.total_allocated,
        used=balance.used,
        pending=balance.pending,
        carried_forward=balance.carried_forward,
        remaining=balance.remaining,
        version=balance.version,
        updated_at=balance.updated_at,
    )


def _build_transaction_response(entry: LeaveTransaction) -> TransactionResponse:
    return TransactionResponse(
        id=entry.id,
        entry_no=entry.entry_no,
        transaction_type=TransactionType(entry.transaction_type),
        amount=entry.amount,
        description=entry.description,
        application_id=entry.application_id,
        created_at=entry.created_at,
    )


async def find_balance(session: AsyncSession, key: BalanceKey) -> LeaveBalance | None:
    """Read the balance row fresh from the database, bypassing the identity map."""
    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.employee_id) == key.employee_id,
            col(LeaveBalance.leave_type) == key.leave_type,
            col(LeaveBalance.year) == key.year,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def read_state(session: AsyncSession, key: BalanceKey) -> BalanceState | None:
    row = await find_balance(session, key)
    return BalanceState.from_row(row) if row is not None else None


def _add_transactions(
    session: AsyncSession,
    balance_id: uuid.UUID,
    key: BalanceKey,
    first_entry_no: int,
    planned: list[PlannedTransaction],
    application_id: uuid.UUID | None,
) -> None:
    for offset, tx in enumerate(planned):
        session.add(
            LeaveTransaction(
                balance_id=balance_id,
                entry_no=first_entry_no + offset,
                employee_id=key.employee_id,
                leave_type=key.leave_type,
                year=key.year,
                transaction_type=tx.transaction_type.value,
                amount=tx.amount,
                description=tx.description,
                application_id=application_id,
            )
        )


async def _insert_balance(
    session: AsyncSession,
    key: BalanceKey,
    totals: BalanceTotals,
    planned: list[PlannedTransaction],
) -> LeaveBalance:
    """Create a balance row with its opening transactions.

    Losing a creation race to another writer surfaces as ConcurrencyConflict;
    the transaction is rolled back and the caller retries.
    """
    balance = LeaveBalance(
        employee_id=key.employee_id,
        leave_type=key.leave_type,
        year=key.year,
        transaction_count=len(planned),
        **totals.as_values(),
    )
    session.add(balance)
    try:
        await session.flush()
        _add_transactions(session, balance.id, key, 1, planned, None)
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConcurrencyConflict(f"Balance {key} was created concurrently; retry the request") from None
    return balance


async def _apply(
    session: AsyncSession,
    key: BalanceKey,
    plan: Planner,
    application_id: uuid.UUID | None = None,
) -> LeaveBalance:
    """Run ``plan`` against the current balance under compare-and-swap."""
    attempts = get_settings().ledger_max_retries
    for attempt in range(1, attempts + 1):
        state = await read_state(session, key)
        if state is None:
            raise InvalidLedgerState(f"No balance record for {key}")

        change = plan(state.totals)
        if not change.totals.is_consistent():
            raise InvalidLedgerState(f"Planned totals for {key} violate the balance invariant: {change.totals}")

        values = {
            **change.totals.as_values(),
            "transaction_count": state.transaction_count + len(change.transactions),
            "updated_at": now_utc(),
        }
        if await compare_and_swap(session, LeaveBalance, state.id, state.version, values):
            _add_transactions(
                session, state.id, key, state.transaction_count + 1, change.transactions, application_id
            )
            await session.flush()
            balance = await find_balance(session, key)
            if balance is None:
                raise InvalidLedgerState(f"Balance {key} disappeared after a successful write")
            return balance

        logger.warning("Balance write conflict on %s (attempt %d/%d)", key, attempt, attempts)

    raise ConcurrencyConflict(f"Balance {key} is being modified concurrently; retry the request")


def quota_days_for(leave_type: str) -> int | None:
    """Allocation of the aggregate quota if ``leave_type`` names its balance."""
    settings = get_settings()
    if leave_type != settings.annual_quota_leave_type:
        return None
    return settings.annual_quota_days


def quota_key(employee_id: uuid.UUID, leave_type: str, year: int) -> BalanceKey | None:
    """The aggregate quota balance that ``leave_type`` also draws from, if any."""
    settings = get_settings()
    if settings.annual_quota_days is None:
        return None
    if leave_type == settings.annual_quota_leave_type or leave_type in settings.annual_quota_exempt_types:
        return None
    return BalanceKey(employee_id, settings.annual_quota_leave_type, year)


async def _ensure_balance(session: AsyncSession, key: BalanceKey) -> None:
    """Lazily create a balance seeded from the policy's default allocation.

    The aggregate quota has no policy and opens with the configured quota.
    """
    if await find_balance(session, key) is not None:
        return
    allocation = quota_days_for(key.leave_type)
    if allocation is None:
        allocation = (await load_policy(session, key.leave_type)).default_allocation
    totals = BalanceTotals(total_allocated=allocation)
    await _insert_balance(session, key, totals, opening_transactions(allocation, 0, key.year))


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------


async def _existing_quota(
    session: AsyncSession, employee_id: uuid.UUID, leave_type: str, year: int
) -> BalanceKey | None:
    # Reservations made before the quota balance existed never touched it.
    quota = quota_key(employee_id, leave_type, year)
    if quota is None or await find_balance(session, quota) is None:
        return None
    return quota


async def reserve(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: str,
    year: int,
    days: int,
    description: str = "Reserved for pending leave application",
    *,
    application_id: uuid.UUID | None = None,
) -> LeaveBalance:
    """Hold ``days`` against remaining entitlement as pending.

    Non-exempt leave types also hold the days against the aggregate quota. If
    either balance is short, InsufficientBalance names that one and the caller
    rolls back whatever was already written.
    """
    _require_positive_days(days)
    key = BalanceKey(employee_id, leave_type, year)
    await _ensure_balance(session, key)
    balance = await _apply(session, key, plan_reserve(leave_type, days, description), application_id)

    quota = quota_key(employee_id, leave_type, year)
    if quota is not None:
        await _ensure_balance(session, quota)
        plan = plan_reserve(quota.leave_type, days, f"{description} ({leave_type})")
        await _apply(session, quota, plan, application_id)
    return balance


async def consume(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: str,
    year: int,
    days: int,
    description: str = "Leave approved",
    *,
    application_id: uuid.UUID | None = None,
) -> LeaveBalance:
    """Convert ``days`` of pending reservation into used days."""
    _require_positive_days(days)
    key = BalanceKey(employee_id, leave_type, year)
    balance = await _apply(session, key, plan_consume(key, days, description), application_id)

    quota = await _existing_quota(session, employee_id, leave_type, year)
    if quota is not None:
        await _apply(session, quota, plan_consume(quota, days, f"{description} ({leave_type})"), application_id)
    return balance


async def release(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: str,
    year: int,
    days: int,
    description: str = "Reservation released",
    *,
    application_id: uuid.UUID | None = None,
) -> LeaveBalance:
    """Return ``days`` of pending reservation to remaining."""
    _require_positive_days(days)
    key = BalanceKey(employee_id, leave_type, year)
    balance = await _apply(session, key, plan_release(key, days, description), application_id)

    quota = await _existing_quota(session, employee_id, leave_type, year)
    if quota is not None:
        await _apply(session, quota, plan_release(quota, days, f"{description} ({leave_type})"), application_id)
    return balance


async def load_balance(session: AsyncSession, employee_id: uuid.UUID, leave_type: str, year: int) -> LeaveBalance:
    """getBalance: fetch the balance row. Raises NotFound."""
    key = BalanceKey(employee_id, leave_type, year)
    balance = await find_balance(session, key)
    if balance is None:
        raise NotFound(f"No {leave_type} balance for employee {employee_id} in {year}")
    return balance


async def initialize_year(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: str,
    year: int,
    allocation: int,
    carried_forward: int = 0,
    *,
    force: bool = False,
) -> LeaveBalance:
    """Open the balance for a year, or reset its allocation when ``force`` is set."""
    if allocation < 0 or carried_forward < 0:
        raise ValidationError("Allocation and carry-forward must not be negative")

    key = BalanceKey(employee_id, leave_type, year)
    if await find_balance(session, key) is None:
        totals = BalanceTotals(total_allocated=allocation, carried_forward=carried_forward)
        return await _insert_balance(session, key, totals, opening_transactions(allocation, carried_forward, year))
    if not force:
        raise AlreadyInitialized(f"Balance {key} is already initialized")
    return await _apply(session, key, plan_reinitialize(key, allocation, carried_forward))


def carry_forward_amount(policy: LeavePolicy, prior: LeaveBalance | None) -> int:
    """Days a prior-year balance contributes to the next year under ``policy``."""
    if prior is None or not policy.allow_carry_forward:
        return 0
    amount = max(prior.remaining, 0)
    if policy.carry_forward_limit is not None:
        amount = min(amount, policy.carry_forward_limit)
    return amount


async def initialize_employee_year(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    policies: list[LeavePolicy] | None = None,
) -> list[LeaveBalance]:
    """Open every active policy's balance for an employee; existing ones are left alone.

    The aggregate quota, when configured, is opened alongside. Returns the
    balances created.
    """
    if policies is None:
        policies = await list_active_policies(session)

    created: list[LeaveBalance] = []
    for policy in policies:
        key = BalanceKey(employee_id, policy.leave_type, year)
        if await find_balance(session, key) is not None:
            continue
        prior = await find_balance(session, BalanceKey(employee_id, policy.leave_type, year - 1))
        carried = carry_forward_amount(policy, prior)
        balance = await initialize_year(
            session, employee_id, policy.leave_type, year, policy.default_allocation, carried
        )
        created.append(balance)

    settings = get_settings()
    if settings.annual_quota_days is not None:
        quota = BalanceKey(employee_id, settings.annual_quota_leave_type, year)
        if await find_balance(session, quota) is None:
            created.append(
                await initialize_year(session, employee_id, quota.leave_type, year, settings.annual_quota_days)
            )
    return created


# ---------------------------------------------------------------------------
# Administrative entry points
# ---------------------------------------------------------------------------


async def _employee_department(employee_id: uuid.UUID) -> uuid.UUID | None:
    employee = await get_directory_service().get_employee(employee_id)
    return employee.department_id if employee is not None else None


async def employees_with_balances(session: AsyncSession, year: int) -> list[uuid.UUID]:
    """Employees holding at least one balance in ``year``."""
    result = await session.execute(
        select(col(LeaveBalance.employee_id)).where(col(LeaveBalance.year) == year).distinct()
    )
    return list(result.scalars().all())


async def initialize_year_for_all(
    session: AsyncSession,
    year: int,
    employee_ids: list[uuid.UUID],
    actor_id: uuid.UUID,
) -> InitializeYearResponse:
    """Open ``year`` for each employee under every active policy, then commit.

    Balances that already exist are counted as skipped, so running the batch
    twice is harmless.
    """
    policies = await list_active_policies(session)
    created = 0
    for employee_id in employee_ids:
        balances = await initialize_employee_year(session, employee_id, year, policies)
        for balance in balances:
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.BALANCE,
                entity_id=balance.id,
                action=AuditAction.INITIALIZE,
                after_json=model_to_audit_dict(balance),
            )
        created += len(balances)

    await session.commit()

    per_employee = len(policies) + (1 if get_settings().annual_quota_days is not None else 0)
    skipped = len(employee_ids) * per_employee - created
    logger.info(
        "Initialized %d balances for %d employees in %d (%d already existed)",
        created,
        len(employee_ids),
        year,
        skipped,
    )
    return InitializeYearResponse(year=year, employees=len(employee_ids), created=created, skipped=skipped)


async def initialize_balances(
    session: AsyncSession,
    auth: AuthContext,
    payload: InitializeYearPayload,
) -> InitializeYearResponse:
    """Year-start initialization for one employee or the whole directory."""
    require(can_manage_balances(auth), "Only admins and managers can initialize balances")

    directory = get_directory_service()
    if payload.employee_id is not None:
        employee = await directory.get_employee(payload.employee_id)
        if employee is None:
            raise NotFound(f"Employee {payload.employee_id} not found")
        employee_ids = [employee.id]
    else:
        employee_ids = [e.id for e in await directory.list_employees()]

    return await initialize_year_for_all(session, payload.year, employee_ids, auth.user_id)


async def adjust_balance(session: AsyncSession, auth: AuthContext, payload: AdjustmentPayload) -> BalanceResponse:
    """Signed administrative change to an allocation, recorded as an adjustment."""
    require(can_manage_balances(auth), "Only admins and managers can adjust balances")
    if payload.amount == 0:
        raise ValidationError("Adjustment amount must not be zero")

    key = BalanceKey(payload.employee_id, payload.leave_type, payload.year)
    await _ensure_balance(session, key)
    before = await find_balance(session, key)
    before_dict = model_to_audit_dict(before) if before is not None else None

    description = f"{payload.reason} (by {auth.user_id})"
    balance = await _apply(session, key, plan_adjust(payload.leave_type, payload.amount, description))

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.BALANCE,
        entity_id=balance.id,
        action=AuditAction.ADJUST,
        before_json=before_dict,
        after_json=model_to_audit_dict(balance),
    )
    await session.commit()
    return build_balance_response(balance)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_balance(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    leave_type: str,
    year: int,
) -> BalanceResponse:
    require(
        can_view_balances(auth, employee_id, await _employee_department(employee_id)),
        "Not authorized to view this employee's balances",
    )
    return build_balance_response(await load_balance(session, employee_id, leave_type, year))


async def list_balances(
    session: AsyncSession,
    auth: AuthContext,
    year: int,
    employee_id: uuid.UUID | None = None,
    leave_type: str | None = None,
) -> BalanceListResponse:
    """Balances for a year, limited to what the actor may see.

    Asking for an employee outside the actor's scope is refused rather than
    answered with an empty list. The aggregate quota is only listed when
    asked for by leave type.
    """
    filters = [col(LeaveBalance.year) == year]
    if leave_type is not None:
        filters.append(col(LeaveBalance.leave_type) == leave_type)
    else:
        filters.append(col(LeaveBalance.leave_type) != get_settings().annual_quota_leave_type)

    if employee_id is not None:
        require(
            can_view_balances(auth, employee_id, await _employee_department(employee_id)),
            "Not authorized to view this employee's balances",
        )
        filters.append(col(LeaveBalance.employee_id) == employee_id)
    else:
        scope = view_scope(auth)
        if scope.kind is ScopeKind.OWN:
            filters.append(col(LeaveBalance.employee_id) == auth.user_id)
        elif scope.kind is ScopeKind.DEPARTMENT:
            members = [
                e.id for e in await get_directory_service().list_employees() if e.department_id == scope.department_id
            ]
            filters.append(col(LeaveBalance.employee_id).in_({*members, auth.user_id}))

    result = await session.execute(
        select(LeaveBalance)
        .where(*filters)
        .order_by(col(LeaveBalance.employee_id), col(LeaveBalance.leave_type))
    )
    items = [build_balance_response(b) for b in result.scalars().all()]
    return BalanceListResponse(items=items, total=len(items))


async def list_transactions(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    leave_type: str,
    year: int,
    offset: int = 0,
    limit: int = 100,
) -> TransactionListResponse:
    """The balance's transaction log in the order it was written."""
    require(
        can_view_balances(auth, employee_id, await _employee_department(employee_id)),
        "Not authorized to view this employee's balances",
    )
    balance = await load_balance(session, employee_id, leave_type, year)

    count_result = await session.execute(
        select(func.count()).select_from(LeaveTransaction).where(col(LeaveTransaction.balance_id) == balance.id)
    )
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveTransaction)
        .where(col(LeaveTransaction.balance_id) == balance.id)
        .order_by(col(LeaveTransaction.entry_no))
        .offset(offset)
        .limit(limit)
    )
    return TransactionListResponse(
        items=[_build_transaction_response(t) for t in result.scalars().all()],
        total=total,
    )
