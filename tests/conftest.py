from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leavedesk.config import reset_settings
from leavedesk.db import create_schema, get_session
from leavedesk.main import app
from leavedesk.models import Role
from leavedesk.schemas.auth import AuthContext
from leavedesk.services.directory import (
    DepartmentInfo,
    EmployeeInfo,
    InMemoryDirectoryService,
    set_directory_service,
)
from leavedesk.services.notification import InMemoryNotifier, LoggingNotifier, set_notifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


ENGINEERING_ID = uuid.UUID("00000000-0000-0000-0000-0000000000e1")
OPERATIONS_ID = uuid.UUID("00000000-0000-0000-0000-0000000000e2")
SALES_ID = uuid.UUID("00000000-0000-0000-0000-0000000000e3")


@dataclass
class People:
    """The directory every test starts from.

    Engineering has a department head; Operations has none on record, so its
    staff go straight to an admin.
    """

    admin: EmployeeInfo
    manager: EmployeeInfo
    head: EmployeeInfo
    staff: EmployeeInfo
    colleague: EmployeeInfo
    outsider: EmployeeInfo
    other_head: EmployeeInfo
    departments: list[DepartmentInfo] = field(default_factory=list)

    def all(self) -> list[EmployeeInfo]:
        return [self.admin, self.manager, self.head, self.staff, self.colleague, self.outsider, self.other_head]

    @staticmethod
    def auth(employee: EmployeeInfo) -> AuthContext:
        return AuthContext(user_id=employee.id, role=employee.role, department_id=employee.department_id)

    @staticmethod
    def headers(employee: EmployeeInfo) -> dict[str, str]:
        return {"X-User-Id": str(employee.id)}


def _employee(role: Role, first_name: str, department_id: uuid.UUID | None = None) -> EmployeeInfo:
    return EmployeeInfo(
        id=uuid.uuid4(),
        role=role,
        department_id=department_id,
        first_name=first_name,
        last_name="Tester",
        email=f"{first_name.lower()}@example.com",
    )


@pytest.fixture
def people() -> People:
    head = _employee(Role.DEPARTMENT_HEAD, "Hana", ENGINEERING_ID)
    other_head = _employee(Role.DEPARTMENT_HEAD, "Omar", SALES_ID)
    return People(
        admin=_employee(Role.ADMIN, "Ada"),
        manager=_employee(Role.MANAGER, "Milo"),
        head=head,
        staff=_employee(Role.STAFF, "Sam", ENGINEERING_ID),
        colleague=_employee(Role.STAFF, "Cleo", ENGINEERING_ID),
        outsider=_employee(Role.STAFF, "Otto", OPERATIONS_ID),
        other_head=other_head,
        departments=[
            DepartmentInfo(id=ENGINEERING_ID, name="Engineering", head_id=head.id),
            DepartmentInfo(id=OPERATIONS_ID, name="Operations", head_id=None),
            DepartmentInfo(id=SALES_ID, name="Sales", head_id=other_head.id),
        ],
    )


@pytest.fixture(autouse=True)
def directory(people: People) -> Iterator[InMemoryDirectoryService]:
    """Seed the in-memory directory for every test."""
    svc = InMemoryDirectoryService()
    svc.seed(*people.all(), *people.departments)
    set_directory_service(svc)
    yield svc
    set_directory_service(InMemoryDirectoryService())


@pytest.fixture(autouse=True)
def notifier() -> Iterator[InMemoryNotifier]:
    """Capture notifications instead of logging them."""
    recorder = InMemoryNotifier()
    set_notifier(recorder)
    yield recorder
    set_notifier(LoggingNotifier())


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """A private in-memory SQLite database per test."""
    _engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_schema(_engine)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
