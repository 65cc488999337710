"""Tests for the directory and notification stubs."""

from __future__ import annotations

import logging
import uuid

import pytest

from leavedesk.models.enums import NotificationEvent, Role
from leavedesk.services.directory import (
    DepartmentInfo,
    DirectoryService,
    EmployeeInfo,
    InMemoryDirectoryService,
)
from leavedesk.services.notification import (
    InMemoryNotifier,
    LoggingNotifier,
    Notifier,
    dispatch,
    get_notifier,
    set_notifier,
)

DEPARTMENT_ID = uuid.uuid4()


def _make_employee(name: str = "Jane", role: Role = Role.STAFF) -> EmployeeInfo:
    return EmployeeInfo(
        id=uuid.uuid4(),
        role=role,
        department_id=DEPARTMENT_ID,
        first_name=name,
        last_name="Doe",
        email=f"{name.lower()}@example.com",
    )


# ---------------------------------------------------------------------------
# InMemoryDirectoryService
# ---------------------------------------------------------------------------


async def test_directory_get_not_found() -> None:
    svc = InMemoryDirectoryService()
    assert await svc.get_employee(uuid.uuid4()) is None
    assert await svc.get_department(uuid.uuid4()) is None


async def test_directory_seed_and_get() -> None:
    svc = InMemoryDirectoryService()
    emp = _make_employee()
    dept = DepartmentInfo(id=DEPARTMENT_ID, name="Engineering", head_id=emp.id)
    svc.seed(emp, dept)

    found = await svc.get_employee(emp.id)
    assert found is not None
    assert found.full_name == "Jane Doe"
    department = await svc.get_department(DEPARTMENT_ID)
    assert department is not None
    assert department.head_id == emp.id


async def test_directory_seed_replaces_record() -> None:
    svc = InMemoryDirectoryService()
    emp = _make_employee()
    svc.seed(emp)
    svc.seed(emp.model_copy(update={"role": Role.DEPARTMENT_HEAD}))

    employees = await svc.list_employees()
    assert len(employees) == 1
    assert employees[0].role == Role.DEPARTMENT_HEAD


def test_directory_satisfies_protocol() -> None:
    assert isinstance(InMemoryDirectoryService(), DirectoryService)


# ---------------------------------------------------------------------------
# Notifiers
# ---------------------------------------------------------------------------


async def test_in_memory_notifier_records() -> None:
    recorder = InMemoryNotifier()
    await recorder.notify(NotificationEvent.LEAVE_APPROVED, "someone", {"total_days": 2})
    assert recorder.events() == [NotificationEvent.LEAVE_APPROVED]
    assert recorder.sent[0].payload == {"total_days": 2}


async def test_logging_notifier(caplog: pytest.LogCaptureFixture) -> None:
    assert isinstance(LoggingNotifier(), Notifier)
    with caplog.at_level(logging.INFO, logger="leavedesk.services.notification"):
        await LoggingNotifier().notify(NotificationEvent.LEAVE_SUBMITTED, "admin", {"status": "pending"})
    assert "leave.submitted -> admin" in caplog.text


async def test_dispatch_uses_configured_notifier(notifier: InMemoryNotifier) -> None:
    assert get_notifier() is notifier
    await dispatch(NotificationEvent.LEAVE_REJECTED, "someone", {})
    assert notifier.events() == [NotificationEvent.LEAVE_REJECTED]


async def test_dispatch_swallows_failures(caplog: pytest.LogCaptureFixture) -> None:
    class Exploding:
        async def notify(self, event: NotificationEvent, recipient: str, payload: dict[str, object]) -> None:
            raise RuntimeError("boom")

    set_notifier(Exploding())
    await dispatch(NotificationEvent.LEAVE_APPROVED, "someone", {})
    assert "Notification leave.approved to someone failed" in caplog.text
