# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leavedesk.models.enums import Role


class AuthContext(BaseModel):
    """The acting user, as resolved through the directory."""

    user_id: uuid.UUID
    role: Role = Role.STAFF
    department_id: uuid.UUID | None = None

    @property
    def is_elevated(self) -> bool:
        return self.role in (Role.ADMIN, Role.MANAGER)
