"""Reminder and follow-up scheduler.

A small polling loop that, every tick:
- materializes today's occurrence of every tracked master from the latest snapshot,
- fires a one-shot reminder inside [start - reminder, start),
- fires a one-shot follow-up between 1 and 60 minutes after the occurrence ends,
- suppresses both while the occurrence is snoozed.

The scheduler never reads the task store directly; callers push a fresh
snapshot after every mutation. One-shot state is owned by the scheduler
instance (`NotifiedStore`) so it can be reset or scoped per instance.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set

from balanceflow.models.constants import (
    DEFAULT_SNOOZE_MINUTES,
    FOLLOW_UP_KEY_PREFIX,
    FOLLOW_UP_MAX_DELAY_MINUTES,
    FOLLOW_UP_MIN_DELAY_MINUTES,
    REMINDER_TICK_SECONDS,
)
from balanceflow.models.notification import Notification, NotificationKind
from balanceflow.models.occurrence import Occurrence
from balanceflow.recurrence.calendar import local_date
from balanceflow.recurrence.materialize import project_occurrence, resolve_occurrence
from balanceflow.recurrence.predicate import occurs_on
from balanceflow.engine.notifications import NotificationSink
from balanceflow.store.task_store import ScheduleSnapshot

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotifiedStore:
    """One-shot bookkeeping: which reminders and follow-ups were already sent.

    Entries are never evicted during the store's lifetime, so a calendar
    occurrence reminds at most once.
    """

    def __init__(self):
        self.reminders: Set[str] = set()
        self.follow_ups: Set[str] = set()

    def reminded(self, key: str) -> bool:
        return key in self.reminders

    def mark_reminded(self, key: str) -> None:
        self.reminders.add(key)

    def forget_reminder(self, key: str) -> None:
        self.reminders.discard(key)

    def followed_up(self, key: str) -> bool:
        return FOLLOW_UP_KEY_PREFIX + key in self.follow_ups

    def mark_followed_up(self, key: str) -> None:
        self.follow_ups.add(FOLLOW_UP_KEY_PREFIX + key)

    def reset(self) -> None:
        self.reminders.clear()
        self.follow_ups.clear()


class SnoozeTable:
    """Occurrence key -> snoozed-until instant. Expired entries are pruned on read."""

    def __init__(self):
        self._until: Dict[str, datetime] = {}

    def snooze(self, key: str, minutes: int, now: datetime) -> datetime:
        until = now + timedelta(minutes=minutes)
        self._until[key] = until
        return until

    def snoozed_until(self, key: str) -> Optional[datetime]:
        return self._until.get(key)

    def is_snoozed(self, key: str, now: datetime) -> bool:
        until = self._until.get(key)
        if until is None:
            return False
        if now >= until:
            del self._until[key]
            return False
        return True

    def clear(self, key: str) -> None:
        self._until.pop(key, None)

    def __len__(self) -> int:
        return len(self._until)


class ReminderScheduler:
    """Polling reminder/follow-up scheduler over a pushed `ScheduleSnapshot`."""

    def __init__(
        self,
        sink: NotificationSink,
        clock: Callable[[], datetime] = _utcnow,
        interval_seconds: float = REMINDER_TICK_SECONDS,
        notified: Optional[NotifiedStore] = None,
        snoozes: Optional[SnoozeTable] = None,
        snooze_rearms: bool = False,
        follow_ups_enabled: bool = True,
    ):
        self.sink = sink
        self.clock = clock
        self.interval_seconds = max(0.5, float(interval_seconds))
        self.notified = notified if notified is not None else NotifiedStore()
        self.snoozes = snoozes if snoozes is not None else SnoozeTable()
        self.snooze_rearms = snooze_rearms
        self.follow_ups_enabled = follow_ups_enabled
        self.snapshot: Optional[ScheduleSnapshot] = None
        self._task: Optional[asyncio.Task] = None

    def update_snapshot(self, snapshot: ScheduleSnapshot) -> None:
        self.snapshot = snapshot

    # ---- evaluation ----

    def tracked_occurrences(self, now: datetime) -> List[Occurrence]:
        """Today's occurrence of every non-holiday scheduled master."""
        snapshot = self.snapshot
        if snapshot is None:
            return []
        today = local_date(now, snapshot.tz)
        out: List[Occurrence] = []
        for master in snapshot.masters:
            if master.is_holiday or master.start_time is None:
                continue
            try:
                if not master.is_recurring:
                    out.append(Occurrence.of_master(master, local_date(master.start_time, snapshot.tz)))
                elif occurs_on(master, today, snapshot.tz):
                    out.append(project_occurrence(master, today, snapshot.ledger, snapshot.tz))
            except Exception:
                logger.exception(f"Failed to materialize task {master.id} for reminders")
        return out

    def tick(self, now: Optional[datetime] = None) -> List[Notification]:
        """Evaluate every tracked occurrence once. Returns the notifications fired."""
        now = now or self.clock()
        fired: List[Notification] = []
        for occurrence in self.tracked_occurrences(now):
            try:
                self._evaluate(occurrence, now, fired)
            except Exception:
                logger.exception(f"Reminder evaluation failed for {occurrence.key}")
        return fired

    def _evaluate(self, occurrence: Occurrence, now: datetime, fired: List[Notification]) -> None:
        key = occurrence.key
        if self.snoozes.is_snoozed(key, now):
            return

        if self._reminder_due(occurrence, now) and not self.notified.reminded(key):
            self._deliver(NotificationKind.REMINDER, key, occurrence, now, fired)
            self.notified.mark_reminded(key)

        if self.follow_ups_enabled and self._follow_up_due(occurrence, now) and not self.notified.followed_up(key):
            self._deliver(NotificationKind.FOLLOW_UP, key, occurrence, now, fired)
            self.notified.mark_followed_up(key)

    @staticmethod
    def _reminder_due(occurrence: Occurrence, now: datetime) -> bool:
        if occurrence.completed or not occurrence.reminder:
            return False
        start = occurrence.start_time
        return start - timedelta(minutes=occurrence.reminder) <= now < start

    @staticmethod
    def _follow_up_due(occurrence: Occurrence, now: datetime) -> bool:
        end = occurrence.end_time
        return (
            end + timedelta(minutes=FOLLOW_UP_MIN_DELAY_MINUTES)
            <= now
            <= end + timedelta(minutes=FOLLOW_UP_MAX_DELAY_MINUTES)
        )

    def _deliver(
        self,
        kind: NotificationKind,
        key: str,
        occurrence: Occurrence,
        now: datetime,
        fired: List[Notification],
    ) -> None:
        notification = Notification(kind=kind, key=key, occurrence=occurrence, fired_at=now)
        self.sink.deliver(notification)
        fired.append(notification)
        logger.debug(f"Sent {kind.value} for {key}")

    # ---- snooze ----

    def snooze(self, task_id: str, minutes: int = DEFAULT_SNOOZE_MINUTES, now: Optional[datetime] = None) -> Optional[datetime]:
        """Snooze an occurrence. Unknown ids are ignored (returns None)."""
        snapshot = self.snapshot
        if snapshot is None or minutes <= 0:
            return None
        occurrence = resolve_occurrence(snapshot.masters, task_id, snapshot.ledger, snapshot.tz)
        if occurrence is None:
            logger.debug(f"snooze: unknown task {task_id}")
            return None
        now = now or self.clock()
        until = self.snoozes.snooze(occurrence.key, minutes, now)
        if self.snooze_rearms:
            self.notified.forget_reminder(occurrence.key)
        logger.debug(f"Snoozed {occurrence.key} until {until.isoformat()}")
        return until

    # ---- driving loop ----

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start ticking on the running event loop, replacing any previous loop."""
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Reminder scheduler started (every {self.interval_seconds:g}s)")
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Reminder scheduler stopped")

    async def _run(self) -> None:
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Reminder tick failed")
            await asyncio.sleep(self.interval_seconds)
