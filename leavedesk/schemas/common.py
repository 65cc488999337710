from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Success envelope shared by every leave endpoint."""

    success: bool = True
    message: str
    data: T


def ok(data: T, message: str) -> Envelope[T]:
    """Wrap ``data`` in a success envelope."""
    return Envelope(message=message, data=data)
