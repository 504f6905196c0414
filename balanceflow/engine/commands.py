"""Routing of user actions relayed back from delivered notifications."""

import logging
from datetime import datetime
from typing import Callable, Optional, Union

from balanceflow.models.constants import DEFAULT_SNOOZE_MINUTES
from balanceflow.models.notification import CommandType, NotificationCommand
from balanceflow.models.occurrence import Occurrence
from balanceflow.engine.reminders import ReminderScheduler
from balanceflow.store.task_store import TaskStore

logger = logging.getLogger(__name__)


class NotificationCommandHandler:
    """Applies mark-done / snooze / focus commands.

    Unknown ids are no-ops; a malformed command never raises to the caller.
    `on_change` runs after a store mutation (the API uses it to persist).
    """

    def __init__(
        self,
        store: TaskStore,
        scheduler: ReminderScheduler,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.on_change = on_change

    def complete_occurrence(self, task_id: str) -> bool:
        if not self.store.set_occurrence_completed(task_id, True):
            logger.debug(f"complete: unknown task {task_id}")
            return False
        self.scheduler.update_snapshot(self.store.snapshot())
        if self.on_change is not None:
            self.on_change()
        return True

    def snooze(self, task_id: str, minutes: int = DEFAULT_SNOOZE_MINUTES) -> Optional[datetime]:
        return self.scheduler.snooze(task_id, minutes)

    def focus(self, task_id: str) -> Optional[Occurrence]:
        return self.store.resolve_occurrence(task_id)

    def handle(self, command: NotificationCommand) -> Union[bool, datetime, Occurrence, None]:
        """Dispatch a command. Returns the command's result, or None on failure."""
        try:
            if command.type == CommandType.COMPLETE:
                return self.complete_occurrence(command.task_id)
            if command.type == CommandType.SNOOZE:
                return self.snooze(command.task_id, command.snooze_minutes or DEFAULT_SNOOZE_MINUTES)
            if command.type == CommandType.FOCUS:
                return self.focus(command.task_id)
        except Exception:
            logger.exception(f"Notification command {command.type} failed for {command.task_id}")
            return None
        logger.warning(f"Unknown notification command type {command.type}")
        return None
