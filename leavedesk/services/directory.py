# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from leavedesk.models.enums import Role


class EmployeeInfo(BaseModel):
    """Employee record from the Identity & Directory service."""

    id: uuid.UUID
    role: Role
    department_id: uuid.UUID | None = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DepartmentInfo(BaseModel):
    """Department record from the directory; ``head_id`` approves staff leave."""

    id: uuid.UUID
    name: str
    head_id: uuid.UUID | None = None


@runtime_checkable
class DirectoryService(Protocol):
    """Interface for the Identity & Directory service."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch an employee. Returns None if not found."""
        ...

    async def list_employees(self) -> list[EmployeeInfo]:
        """List every active employee."""
        ...

    async def get_department(self, department_id: uuid.UUID) -> DepartmentInfo | None:
        """Fetch a department. Returns None if not found."""
        ...


class InMemoryDirectoryService:
    """In-memory stub implementation for development and tests."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}
        self._departments: dict[uuid.UUID, DepartmentInfo] = {}

    def seed(self, *records: EmployeeInfo | DepartmentInfo) -> None:
        """Seed employees and departments."""
        for record in records:
            if isinstance(record, EmployeeInfo):
                self._employees[record.id] = record
            else:
                self._departments[record.id] = record

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        return self._employees.get(employee_id)

    async def list_employees(self) -> list[EmployeeInfo]:
        return list(self._employees.values())

    async def get_department(self, department_id: uuid.UUID) -> DepartmentInfo | None:
        return self._departments.get(department_id)


_directory_service: DirectoryService = InMemoryDirectoryService()


def get_directory_service() -> DirectoryService:
    """FastAPI dependency for the directory service."""
    return _directory_service


def set_directory_service(service: DirectoryService) -> None:
    """Override the service (for testing or production wiring)."""
    global _directory_service
    _directory_service = service
