"""Single-slot, time-bounded undo buffer for deleted tasks."""

import asyncio
import logging
import time
from typing import Callable, FrozenSet, Iterable, NamedTuple, Optional

from balanceflow.models.constants import UNDO_WINDOW_SECONDS
from balanceflow.models.task import MasterTask

logger = logging.getLogger(__name__)


class DeletedTask(NamedTuple):
    """A deleted master together with the ledger dates purged with it."""

    task: MasterTask
    completed_days: FrozenSet[str] = frozenset()


class UndoSlot:
    """Holds the most recently deleted master for a short window.

    A new `hold()` overwrites the pending record and cancels its expiry timer.
    Expiry is scheduled on the running event loop when there is one, and is
    also checked lazily against `clock` so the slot behaves the same without
    a loop.
    """

    def __init__(
        self,
        window_seconds: float = UNDO_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self._clock = clock
        self._record: Optional[DeletedTask] = None
        self._expires_at: Optional[float] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    def hold(self, task: MasterTask, completed_days: Iterable[str] = ()) -> None:
        self._cancel_timer()
        self._record = DeletedTask(task, frozenset(completed_days))
        self._expires_at = self._clock() + self.window_seconds
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._timer = loop.call_later(self.window_seconds, self._expire)

    @property
    def pending(self) -> Optional[MasterTask]:
        record = self.pending_record
        return record.task if record is not None else None

    @property
    def pending_record(self) -> Optional[DeletedTask]:
        if self._record is not None and self._expires_at is not None and self._clock() >= self._expires_at:
            self._expire()
        return self._record

    def take(self) -> Optional[DeletedTask]:
        """Return the pending record (if still within the window) and clear the slot."""
        record = self.pending_record
        self.clear()
        return record

    def clear(self) -> None:
        self._cancel_timer()
        self._record = None
        self._expires_at = None

    def _expire(self) -> None:
        if self._record is not None:
            logger.debug(f"Undo window expired for task {self._record.task.id}")
        self._timer = None
        self._record = None
        self._expires_at = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
