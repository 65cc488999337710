# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from leavedesk.exceptions import Unauthenticated
from leavedesk.schemas.auth import AuthContext
from leavedesk.services.directory import get_directory_service


async def get_auth_context(x_user_id: uuid.UUID = Header()) -> AuthContext:
    """Resolve the acting user from the ``X-User-Id`` header through the directory."""
    employee = await get_directory_service().get_employee(x_user_id)
    if employee is None:
        raise Unauthenticated(f"Unknown user {x_user_id}")
    return AuthContext(user_id=employee.id, role=employee.role, department_id=employee.department_id)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]
