"""Notification collaborator.

Delivery mechanics (email templates, SMTP) live outside this service; the
workflow only calls ``notify`` after a transition has been committed. A
failing notifier never undoes or fails the transition that triggered it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from leavedesk.models.enums import NotificationEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    async def notify(self, event: NotificationEvent, recipient: str, payload: dict[str, Any]) -> None:
        """Deliver ``event`` to ``recipient`` (an employee id or a role name)."""
        ...


class LoggingNotifier:
    """Default notifier: writes events to the log."""

    async def notify(self, event: NotificationEvent, recipient: str, payload: dict[str, Any]) -> None:
        logger.info("Notify %s -> %s: %s", event.value, recipient, payload)


@dataclass
class SentNotification:
    event: NotificationEvent
    recipient: str
    payload: dict[str, Any]


@dataclass
class InMemoryNotifier:
    """Records notifications; used by tests and local tooling."""

    sent: list[SentNotification] = field(default_factory=list)

    async def notify(self, event: NotificationEvent, recipient: str, payload: dict[str, Any]) -> None:
        self.sent.append(SentNotification(event, recipient, payload))

    def events(self) -> list[NotificationEvent]:
        return [n.event for n in self.sent]


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _notifier


def set_notifier(notifier: Notifier) -> None:
    """Override the notifier (for testing or production wiring)."""
    global _notifier
    _notifier = notifier


async def dispatch(event: NotificationEvent, recipient: str, payload: dict[str, Any]) -> None:
    """Fire-and-forget delivery; failures are logged and swallowed."""
    try:
        await get_notifier().notify(event, recipient, payload)
    except Exception:
        logger.exception("Notification %s to %s failed", event.value, recipient)
