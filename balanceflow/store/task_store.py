"""In-memory task store: master collections, completion ledger and undo slot."""

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from balanceflow.errors import HolidayTaskError
from balanceflow.models.backup import BackupDocument
from balanceflow.models.constants import LOAD_BASELINE_MINUTES, UNDO_WINDOW_SECONDS
from balanceflow.models.occurrence import Occurrence, OccurrenceId, TaskRef, master_id_of
from balanceflow.models.suggestion import Suggestion
from balanceflow.models.task import MasterTask
from balanceflow.recurrence.calendar import compose_on, local_date
from balanceflow.recurrence.holidays import us_federal_holidays
from balanceflow.recurrence.materialize import (
    occurrences_between,
    occurrences_on,
    resolve_occurrence,
)
from balanceflow.store.ledger import CompletedOccurrenceLedger
from balanceflow.store.undo import UndoSlot

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Immutable view of the store handed to the reminder scheduler."""

    masters: Tuple[MasterTask, ...]
    ledger: Mapping[str, FrozenSet[str]]
    tz: tzinfo = timezone.utc


class TaskStore:
    """Owns the scheduled and unscheduled master collections and the ledger.

    All mutations are synchronous. Read views materialize occurrences on demand
    and include generated holiday tasks when enabled.
    """

    def __init__(
        self,
        tz: tzinfo = timezone.utc,
        undo_window_seconds: float = UNDO_WINDOW_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        holidays_enabled: bool = True,
    ):
        self.tz = tz
        self.clock = clock
        self.holidays_enabled = holidays_enabled
        self.ledger = CompletedOccurrenceLedger()
        self.undo = UndoSlot(window_seconds=undo_window_seconds, clock=monotonic)
        self._scheduled: List[MasterTask] = []
        self._unscheduled: List[MasterTask] = []
        self._suggestions: List[Suggestion] = []
        self._holiday_cache: Dict[int, List[MasterTask]] = {}

    # ---- collections ----

    @property
    def scheduled_tasks(self) -> List[MasterTask]:
        return list(self._scheduled)

    @property
    def unscheduled_tasks(self) -> List[MasterTask]:
        return list(self._unscheduled)

    @property
    def suggestions(self) -> List[Suggestion]:
        return list(self._suggestions)

    def set_suggestions(self, suggestions: Iterable[Suggestion]) -> None:
        self._suggestions = list(suggestions)

    def today(self) -> date:
        return local_date(self.clock(), self.tz)

    def holidays_for_year(self, year: int) -> List[MasterTask]:
        if not self.holidays_enabled:
            return []
        if year not in self._holiday_cache:
            self._holiday_cache[year] = us_federal_holidays(year, self.tz)
        return self._holiday_cache[year]

    def _masters_for_days(self, start_day: date, end_day: date) -> List[MasterTask]:
        masters = list(self._scheduled)
        for year in range(start_day.year, end_day.year + 1):
            masters.extend(self.holidays_for_year(year))
        return masters

    def _find(self, master_id: str) -> Tuple[Optional[MasterTask], Optional[List[MasterTask]]]:
        for collection in (self._scheduled, self._unscheduled):
            for task in collection:
                if task.id == master_id:
                    return task, collection
        return None, None

    def _is_holiday_id(self, master_id: str) -> bool:
        if not master_id.startswith("holiday-"):
            return False
        try:
            year = int(master_id.rsplit("-", 1)[1])
        except ValueError:
            return False
        return any(h.id == master_id for h in self.holidays_for_year(year))

    def get_master(self, ref: TaskRef) -> Optional[MasterTask]:
        """Master record for a master id or instance id (holidays excluded)."""
        task, _ = self._find(self._master_id(ref))
        return task

    def _master_id(self, ref: TaskRef) -> str:
        # A stored master whose id merely looks like an instance id wins over parsing.
        if isinstance(ref, str):
            task, _ = self._find(ref)
            if task is not None:
                return ref
        return master_id_of(ref)

    def _target_id(self, ref: TaskRef) -> Optional[str]:
        """Master id addressed by `ref`; None when an instance id no longer resolves."""
        master_id = self._master_id(ref)
        if str(ref) != master_id and self.resolve_occurrence(ref) is None:
            return None
        return master_id

    # ---- mutations ----

    def add_masters(self, tasks: Iterable[MasterTask]) -> List[MasterTask]:
        """Insert masters, partitioned by presence of a start time.

        Returns the tasks actually added; ids already present are skipped.
        """
        added: List[MasterTask] = []
        for task in tasks:
            if task.is_holiday:
                raise HolidayTaskError(f"Holiday task {task.id} is generated and cannot be added")
            existing, _ = self._find(task.id)
            if existing is not None:
                logger.warning(f"Task {task.id} already exists; skipping insert")
                continue
            if task.start_time is None:
                self._unscheduled.append(task)
            else:
                self._scheduled.append(task)
            added.append(task)
            logger.debug(f"Added task {task.id}: {task.title[:50]}")
        return added

    def update_master(self, updated: Union[MasterTask, Occurrence]) -> Optional[MasterTask]:
        """Replace a master with an edited record.

        Edits of a recurring master apply to every occurrence. When an edited
        occurrence is passed, its time-of-day is applied to the master's anchor
        date so the series keeps its anchor. Returns the stored master, or None
        if the target is unknown.
        """
        edited_occurrence = isinstance(updated, Occurrence) and updated.occurrence_id is not None
        ref = updated.occurrence_id if edited_occurrence else updated.id
        master_id = self._target_id(ref)
        if master_id is None:
            logger.debug(f"update_master: occurrence {ref} not found")
            return None

        if self._is_holiday_id(master_id):
            raise HolidayTaskError(f"Holiday task {master_id} cannot be edited")

        existing, collection = self._find(master_id)
        if existing is None:
            logger.debug(f"update_master: task {master_id} not found")
            return None

        data = updated.model_dump(include=set(MasterTask.model_fields))
        data["id"] = master_id
        data["is_holiday"] = False
        if edited_occurrence and existing.is_recurring:
            # Per-occurrence completion lives in the ledger, not on the master.
            data["completed"] = existing.completed
            if updated.start_time is not None and existing.start_time is not None:
                anchor_day = local_date(existing.start_time, self.tz)
                data["start_time"] = compose_on(anchor_day, updated.start_time, self.tz)
        new_master = MasterTask.model_validate(data)

        if existing.is_recurring and not new_master.is_recurring:
            self.ledger.purge(master_id)

        target = self._scheduled if new_master.start_time is not None else self._unscheduled
        if collection is target:
            idx = next(i for i, t in enumerate(collection) if t.id == master_id)
            collection[idx] = new_master
        else:
            collection.remove(existing)
            target.append(new_master)
            logger.debug(
                f"Moved task {master_id} to {'scheduled' if target is self._scheduled else 'unscheduled'}"
            )
        return new_master

    def delete_master(self, ref: TaskRef) -> Optional[MasterTask]:
        """Delete a master (whole series for recurring tasks) and hold it for undo.

        Unknown ids are a no-op and leave any pending undo untouched.
        """
        master_id = self._target_id(ref)
        if master_id is None:
            logger.debug(f"delete_master: occurrence {ref} not found")
            return None
        if self._is_holiday_id(master_id):
            raise HolidayTaskError(f"Holiday task {master_id} cannot be deleted")

        task, collection = self._find(master_id)
        if task is None:
            logger.debug(f"delete_master: task {master_id} not found")
            return None

        collection.remove(task)
        self.undo.hold(task, self.ledger.purge(master_id))
        if task.is_recurring and str(ref) != master_id:
            logger.warning(f"Deleting occurrence {ref} removed the entire series {master_id}")
        logger.debug(f"Deleted task {master_id}")
        return task

    @property
    def recently_deleted(self) -> Optional[MasterTask]:
        return self.undo.pending

    def undo_delete(self) -> Optional[MasterTask]:
        """Restore the pending deleted master, if still within the undo window."""
        record = self.undo.take()
        if record is None:
            return None
        task = record.task
        self.add_masters([task])
        self.ledger.restore(task.id, record.completed_days)
        logger.debug(f"Restored task {task.id}")
        return task

    def toggle_completion(self, task: MasterTask, day: date) -> Optional[bool]:
        """Flip completion: the master flag for one-off tasks, the ledger for recurring ones.

        Returns the new state, or None if the master is unknown.
        """
        if isinstance(task, Occurrence) and task.occurrence_id is not None:
            master_id = task.occurrence_id.master_id
        else:
            master_id = self._master_id(task.id)
        master, collection = self._find(master_id)
        if master is None:
            logger.debug(f"toggle_completion: task {master_id} not found")
            return None
        if master.is_recurring:
            return self.ledger.toggle(master_id, day)
        self._replace(collection, master.model_copy(update={"completed": not master.completed}))
        return not master.completed

    def set_occurrence_completed(self, ref: TaskRef, completed: bool = True) -> bool:
        """Idempotently mark an occurrence done (or not done). False if unresolvable."""
        occurrence = self.resolve_occurrence(ref)
        if occurrence is None or occurrence.is_holiday:
            return False
        master, collection = self._find(occurrence.id)
        if master is None:
            return False
        if master.is_recurring:
            if occurrence.occurrence_date is None:
                return False
            self.ledger.set_completed(master.id, occurrence.occurrence_date, completed)
        elif master.completed != completed:
            self._replace(collection, master.model_copy(update={"completed": completed}))
        return True

    def schedule_unscheduled(self, task: TaskRef, new_start_time: datetime) -> Optional[MasterTask]:
        """Move an unscheduled master onto the timeline."""
        master_id = task.id if isinstance(task, MasterTask) else self._master_id(task)
        master, collection = self._find(master_id)
        if master is None or collection is not self._unscheduled:
            logger.debug(f"schedule_unscheduled: task {master_id} is not unscheduled")
            return None
        scheduled = MasterTask.model_validate({**master.model_dump(), "start_time": new_start_time})
        self._unscheduled.remove(master)
        self._scheduled.append(scheduled)
        return scheduled

    def set_schedule(self, tasks: Iterable[MasterTask]) -> None:
        """Replace the scheduled collection (holiday tasks are ignored)."""
        self._scheduled = [t for t in tasks if not t.is_holiday and t.start_time is not None]
        self._prune_ledger()

    def _replace(self, collection: List[MasterTask], task: MasterTask) -> None:
        idx = next(i for i, t in enumerate(collection) if t.id == task.id)
        collection[idx] = task

    def _prune_ledger(self) -> None:
        recurring_ids = {t.id for t in self._scheduled + self._unscheduled if t.is_recurring}
        self.ledger.retain_only(recurring_ids)

    # ---- views ----

    def occurrences_on(self, day: date) -> List[Occurrence]:
        return occurrences_on(self._masters_for_days(day, day), day, self.ledger, self.tz)

    def occurrences_between(self, start_day: date, end_day: date) -> List[Occurrence]:
        return occurrences_between(
            self._masters_for_days(start_day, end_day), start_day, end_day, self.ledger, self.tz
        )

    def resolve_occurrence(self, ref: TaskRef) -> Optional[Occurrence]:
        masters = self._scheduled + self._unscheduled
        occ_id = ref if isinstance(ref, OccurrenceId) else OccurrenceId.parse(ref)
        if occ_id is not None:
            masters = masters + self.holidays_for_year(occ_id.on_date.year)
        elif isinstance(ref, str) and self._is_holiday_id(ref):
            masters = masters + self.holidays_for_year(int(ref.rsplit("-", 1)[1]))
        return resolve_occurrence(masters, ref, self.ledger, self.tz)

    get_task_by_id = resolve_occurrence

    def load_factor(self, day: date) -> float:
        """Share of an 8-hour day taken by the day's occurrences, capped at 1.0."""
        total_minutes = sum(o.duration for o in self.occurrences_on(day))
        return min(total_minutes / LOAD_BASELINE_MINUTES, 1.0)

    def snapshot(self) -> ScheduleSnapshot:
        return ScheduleSnapshot(masters=tuple(self._scheduled), ledger=self.ledger.frozen(), tz=self.tz)

    # ---- backup state ----

    def to_backup(self) -> BackupDocument:
        return BackupDocument(
            tasks=list(self._scheduled),
            unscheduled_tasks=list(self._unscheduled),
            suggestions=list(self._suggestions),
            completed_occurrences=self.ledger.to_dict(),
        )

    def replace_state(self, document: BackupDocument) -> None:
        """Swap in a validated backup document wholesale."""
        self._scheduled = [t for t in document.tasks if not t.is_holiday]
        self._unscheduled = [t for t in document.unscheduled_tasks if not t.is_holiday]
        self._suggestions = list(document.suggestions)
        self.ledger = CompletedOccurrenceLedger(document.completed_occurrences)
        self._prune_ledger()
        self.undo.clear()
