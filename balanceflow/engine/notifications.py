"""Notification delivery ports.

The scheduler decides *what* to notify; a sink decides how it reaches the user.
"""

import logging
from typing import List, Protocol

from balanceflow.models.notification import Notification, NotificationKind

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Delivery collaborator."""

    def deliver(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink:
    """Writes notifications to the log. Useful when no client is attached."""

    def deliver(self, notification: Notification) -> None:
        occurrence = notification.occurrence
        if notification.kind == NotificationKind.REMINDER:
            logger.info(f"Reminder: {occurrence.title} at {occurrence.start_time.isoformat()} ({notification.key})")
        else:
            logger.info(f"Follow-up: you finished {occurrence.title!r}. How did it go? ({notification.key})")


class OutboxNotificationSink:
    """Buffers notifications until a client drains them."""

    def __init__(self):
        self._pending: List[Notification] = []

    def deliver(self, notification: Notification) -> None:
        self._pending.append(notification)

    def drain(self) -> List[Notification]:
        pending, self._pending = self._pending, []
        return pending

    def __len__(self) -> int:
        return len(self._pending)
