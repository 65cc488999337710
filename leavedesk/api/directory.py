# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Header

from leavedesk.api.deps import get_auth_context
from leavedesk.exceptions import NotFound, PermissionDenied
from leavedesk.models.enums import Role
from leavedesk.schemas.common import Envelope, ok
from leavedesk.schemas.directory import UpsertDepartmentRequest, UpsertEmployeeRequest
from leavedesk.services.directory import DepartmentInfo, EmployeeInfo, InMemoryDirectoryService, get_directory_service

router = APIRouter(prefix="/directory", tags=["directory"])


def _stub_directory() -> InMemoryDirectoryService:
    service = get_directory_service()
    if not isinstance(service, InMemoryDirectoryService):
        raise NotFound("Directory is managed externally")
    return service


async def require_directory_admin(x_user_id: Annotated[uuid.UUID | None, Header()] = None) -> None:
    """Admins maintain the stub directory; an empty directory accepts its first entries from anyone."""
    if not await _stub_directory().list_employees():
        return
    if x_user_id is None:
        raise PermissionDenied("Admin access required")
    auth = await get_auth_context(x_user_id)
    if auth.role != Role.ADMIN:
        raise PermissionDenied("Admin access required")


AdminDep = Annotated[None, Depends(require_directory_admin)]


@router.put("/employees/{employee_id}", response_model=Envelope[EmployeeInfo])
async def upsert_employee(
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    _admin: AdminDep,
) -> Envelope[EmployeeInfo]:
    """Create or update an employee in the stub directory (admin only)."""
    employee = EmployeeInfo(id=employee_id, **payload.model_dump())
    _stub_directory().seed(employee)
    return ok(employee, "Employee saved")


@router.get("/employees", response_model=Envelope[list[EmployeeInfo]])
async def list_employees(_admin: AdminDep) -> Envelope[list[EmployeeInfo]]:
    return ok(await get_directory_service().list_employees(), "Employees retrieved")


@router.put("/departments/{department_id}", response_model=Envelope[DepartmentInfo])
async def upsert_department(
    department_id: uuid.UUID, payload: UpsertDepartmentRequest, _admin: AdminDep
) -> Envelope[DepartmentInfo]:
    """Create or update a department in the stub directory (admin only)."""
    department = DepartmentInfo(id=department_id, **payload.model_dump())
    _stub_directory().seed(department)
    return ok(department, "Department saved")


@router.get("/departments/{department_id}", response_model=Envelope[DepartmentInfo])
async def get_department(department_id: uuid.UUID, _admin: AdminDep) -> Envelope[DepartmentInfo]:
    department = await get_directory_service().get_department(department_id)
    if department is None:
        raise NotFound(f"Department {department_id} not found")
    return ok(department, "Department retrieved")
