"""Verification of rebalancing collaborator output.

The collaborator may only move tasks in time. Its result is accepted only if it
returns exactly the ids it was given, each with a start time and with its
recurrence unchanged; otherwise the pre-rebalance schedule is kept.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from balanceflow.engine.ai_exclusion import filter_ai_excluded
from balanceflow.errors import RebalanceRejected
from balanceflow.models.task import MasterTask
from balanceflow.store.task_store import TaskStore

logger = logging.getLogger(__name__)

_datetime_adapter = TypeAdapter(datetime)


class ScheduleRebalancer(Protocol):
    """Rebalancing collaborator."""

    def rebalance(self, tasks: List[MasterTask]) -> List[Dict[str, Any]]:
        ...


@dataclass
class RebalanceOutcome:
    tasks: List[MasterTask]
    accepted: bool
    reason: Optional[str] = None


def merge_rebalanced(original: List[MasterTask], returned: Any) -> List[MasterTask]:
    """Apply returned start times to the original tasks.

    Raises RebalanceRejected on any id mismatch or malformed item. Only
    `startTime` is taken from the collaborator; every other field keeps its
    original value.
    """
    if not isinstance(returned, list):
        raise RebalanceRejected("rebalanced schedule is not a list")

    by_id = {t.id: t for t in original}
    seen = {}
    for item in returned:
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            raise RebalanceRejected("rebalanced item without an id")
        task_id = item["id"]
        if task_id not in by_id:
            raise RebalanceRejected(f"unknown task id {task_id}")
        if task_id in seen:
            raise RebalanceRejected(f"duplicate task id {task_id}")
        seen[task_id] = item

    if set(seen) != set(by_id):
        raise RebalanceRejected(f"task count mismatch: sent {len(by_id)}, got {len(seen)}")

    merged: List[MasterTask] = []
    for task in original:
        item = seen[task.id]
        recurrence = item.get("recurrence", task.recurrence)
        if isinstance(recurrence, str) and recurrence.lower() != task.recurrence:
            raise RebalanceRejected(f"recurrence changed for task {task.id}")
        raw_start = item.get("startTime", item.get("start_time"))
        if raw_start is None:
            raise RebalanceRejected(f"task {task.id} lost its start time")
        try:
            start = _datetime_adapter.validate_python(raw_start)
        except ValidationError as e:
            raise RebalanceRejected(f"invalid start time for task {task.id}") from e
        merged.append(MasterTask.model_validate({**task.model_dump(), "start_time": start}))
    return merged


def apply_rebalance(store: TaskStore, rebalancer: ScheduleRebalancer) -> RebalanceOutcome:
    """Ask the collaborator to rebalance the scheduled tasks and apply the result if valid."""
    current = store.scheduled_tasks
    allowed, excluded = filter_ai_excluded(current)
    if not allowed:
        return RebalanceOutcome(tasks=current, accepted=True)

    returned = rebalancer.rebalance(allowed)
    try:
        merged = merge_rebalanced(allowed, returned)
    except RebalanceRejected as e:
        logger.warning(f"Rebalance rejected, keeping previous schedule: {e}")
        return RebalanceOutcome(tasks=current, accepted=False, reason=str(e))

    merged_by_id = {t.id: t for t in merged}
    new_schedule = [merged_by_id.get(t.id, t) for t in current]
    store.set_schedule(new_schedule)
    moved = sum(1 for old, new in zip(current, new_schedule) if old.start_time != new.start_time)
    logger.info(f"Rebalance applied: {moved} of {len(allowed)} task(s) moved")
    return RebalanceOutcome(tasks=new_schedule, accepted=True)
