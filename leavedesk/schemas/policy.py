# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class PolicyUpsertPayload(BaseModel):
    """Request body for creating or replacing a leave policy."""

    description: str = Field(default="", max_length=1000)
    default_allocation: int = Field(ge=0, description="Days granted per year")
    max_consecutive_days: int = Field(default=365, ge=1)
    min_advance_notice_days: int = Field(default=0, ge=0)
    max_advance_booking_days: int = Field(default=365, ge=1)
    allow_carry_forward: bool = False
    carry_forward_limit: int | None = Field(default=None, ge=0)
    is_active: bool = True


class PolicyResponse(BaseModel):
    id: uuid.UUID
    leave_type: str
    description: str
    default_allocation: int
    max_consecutive_days: int
    min_advance_notice_days: int
    max_advance_booking_days: int
    allow_carry_forward: bool
    carry_forward_limit: int | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PolicyListResponse(BaseModel):
    items: list[PolicyResponse]
    total: int
