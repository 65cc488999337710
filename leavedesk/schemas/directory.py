# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from leavedesk.models.enums import Role


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the stub directory."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=1, max_length=255)
    role: Role = Role.STAFF
    department_id: uuid.UUID | None = None


class UpsertDepartmentRequest(BaseModel):
    """Request body for upserting a department in the stub directory."""

    name: str = Field(min_length=1, max_length=255)
    head_id: uuid.UUID | None = None
