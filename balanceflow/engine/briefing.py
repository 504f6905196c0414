"""Daily briefing: the day's most important open tasks."""

from dataclasses import dataclass
from datetime import date
from typing import List

from balanceflow.models.constants import BRIEFING_TOP_TASKS
from balanceflow.models.occurrence import Occurrence
from balanceflow.models.task import PRIORITY_ORDER
from balanceflow.store.task_store import TaskStore


@dataclass
class DailyBriefing:
    day: date
    top_tasks: List[Occurrence]
    open_count: int
    load: float


def daily_briefing(store: TaskStore, day: date, limit: int = BRIEFING_TOP_TASKS) -> DailyBriefing:
    """Open, non-holiday occurrences of `day`, highest priority first (then by start time)."""
    open_tasks = [o for o in store.occurrences_on(day) if not o.completed and not o.is_holiday]
    ranked = sorted(open_tasks, key=lambda o: (PRIORITY_ORDER[o.priority], o.start_time))
    return DailyBriefing(
        day=day,
        top_tasks=ranked[:limit],
        open_count=len(open_tasks),
        load=store.load_factor(day),
    )
