"""Completed-occurrence ledger: which dated occurrences of recurring tasks are done."""

import logging
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Mapping, Set

from balanceflow.recurrence.calendar import iso_day

logger = logging.getLogger(__name__)


class CompletedOccurrenceLedger:
    """Mapping of master id to the set of ISO dates whose occurrence is completed.

    Entries exist only for recurring masters; the task store enforces that and
    purges a master's entry when the master is deleted.
    """

    def __init__(self, entries: Mapping[str, List[str]] = None):
        self._entries: Dict[str, Set[str]] = {}
        if entries:
            for master_id, days in entries.items():
                if days:
                    self._entries[master_id] = set(days)

    def is_completed(self, master_id: str, day: date) -> bool:
        return iso_day(day) in self._entries.get(master_id, ())

    def get(self, master_id: str, default=()):
        return self._entries.get(master_id, default)

    def toggle(self, master_id: str, day: date) -> bool:
        """Flip completion of (master, day). Returns the new state."""
        key = iso_day(day)
        days = self._entries.setdefault(master_id, set())
        if key in days:
            days.discard(key)
            if not days:
                del self._entries[master_id]
            return False
        days.add(key)
        return True

    def set_completed(self, master_id: str, day: date, completed: bool = True) -> None:
        if self.is_completed(master_id, day) != completed:
            self.toggle(master_id, day)

    def purge(self, master_id: str) -> FrozenSet[str]:
        """Remove a master's entry and return the dates it held."""
        days = self._entries.pop(master_id, None)
        if days is None:
            return frozenset()
        logger.debug(f"Purged ledger entry for task {master_id}")
        return frozenset(days)

    def restore(self, master_id: str, days: Iterable[str]) -> None:
        """Put back an entry removed by `purge`."""
        days = set(days)
        if days:
            self._entries.setdefault(master_id, set()).update(days)

    def retain_only(self, master_ids: Set[str]) -> None:
        """Drop entries whose master is not in `master_ids`."""
        for master_id in list(self._entries):
            if master_id not in master_ids:
                logger.debug(f"Dropping ledger entry for non-recurring or unknown task {master_id}")
                del self._entries[master_id]

    def frozen(self) -> Dict[str, FrozenSet[str]]:
        """Immutable copy for snapshots."""
        return {master_id: frozenset(days) for master_id, days in self._entries.items()}

    def to_dict(self) -> Dict[str, List[str]]:
        """Serializable form: master id -> sorted ISO dates."""
        return {master_id: sorted(days) for master_id, days in self._entries.items()}

    def __contains__(self, master_id: str) -> bool:
        return master_id in self._entries

    def __eq__(self, other) -> bool:
        if not isinstance(other, CompletedOccurrenceLedger):
            return NotImplemented
        return self._entries == other._entries
