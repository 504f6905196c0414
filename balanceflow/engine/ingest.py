"""Ingestion of text-to-task collaborator output.

The collaborator is opaque: it turns free text into task-shaped dicts. Nothing it
returns is trusted until it passes `validate_parsed_task`.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from balanceflow.engine.ai_exclusion import filter_ai_excluded
from balanceflow.models.constants import DEFAULT_DURATION_MINUTES
from balanceflow.models.suggestion import Suggestion
from balanceflow.models.task import MasterTask, Priority, Recurrence
from balanceflow.store.task_store import TaskStore

logger = logging.getLogger(__name__)

REQUIRED_TASK_FIELDS = ("title",)


@dataclass
class ParsedSchedule:
    """Raw collaborator output."""

    scheduled_tasks: List[Dict[str, Any]] = field(default_factory=list)
    unscheduled_tasks: List[Dict[str, Any]] = field(default_factory=list)
    suggestions: List[Dict[str, Any]] = field(default_factory=list)


class TextToTaskParser(Protocol):
    """Text-to-task collaborator."""

    def parse_and_schedule(self, text: str, existing_tasks: List[MasterTask]) -> ParsedSchedule:
        ...


@dataclass
class CaptureResult:
    added: List[MasterTask]
    rejected: int
    suggestions: List[Suggestion]


def validate_parsed_task(raw: Dict[str, Any]) -> Optional[MasterTask]:
    """Turn one collaborator item into a MasterTask, or None if it is unusable.

    Ids are always freshly generated, and completion and holiday flags are
    never taken from the collaborator.
    """
    if not isinstance(raw, dict):
        return None
    for name in REQUIRED_TASK_FIELDS:
        value = raw.get(name)
        if not isinstance(value, str) or not value.strip():
            return None

    data = {
        "id": str(uuid.uuid4()),
        "title": raw["title"].strip(),
        "description": raw.get("description"),
        "startTime": raw.get("startTime", raw.get("start_time")),
        "duration": raw.get("duration", DEFAULT_DURATION_MINUTES),
        "priority": raw.get("priority") or Priority.MEDIUM,
        "recurrence": (raw.get("recurrence") or Recurrence.NONE),
        "reminder": raw.get("reminder"),
        "completed": False,
        "isHoliday": False,
    }
    if isinstance(data["recurrence"], str):
        data["recurrence"] = data["recurrence"].lower()
    try:
        return MasterTask.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Dropping invalid task from assistant: {e.error_count()} problem(s)")
        return None


def validate_parsed_tasks(items: Iterable[Dict[str, Any]]) -> List[MasterTask]:
    tasks = []
    for raw in items:
        task = validate_parsed_task(raw)
        if task is not None:
            tasks.append(task)
    return tasks


def validate_suggestions(items: Iterable[Dict[str, Any]]) -> List[Suggestion]:
    out = []
    for raw in items:
        if not isinstance(raw, dict):
            continue
        try:
            out.append(Suggestion.model_validate({"id": str(uuid.uuid4()), **{k: v for k, v in raw.items() if k != "id"}}))
        except ValidationError:
            logger.debug("Dropping invalid suggestion from assistant")
    return out


def ai_context(store: TaskStore) -> List[MasterTask]:
    """Existing tasks the collaborator may see (AI-excluded tasks removed)."""
    allowed, _ = filter_ai_excluded(store.scheduled_tasks + store.unscheduled_tasks)
    return allowed


def capture_text(store: TaskStore, parser: TextToTaskParser, text: str) -> CaptureResult:
    """Parse free text with the collaborator and insert the validated tasks."""
    parsed = parser.parse_and_schedule(text, ai_context(store))

    raw_items = list(parsed.scheduled_tasks) + list(parsed.unscheduled_tasks)
    tasks = validate_parsed_tasks(raw_items)
    rejected = len(raw_items) - len(tasks)
    if rejected:
        logger.warning(f"Assistant returned {rejected} unusable task(s); they were dropped")

    added = store.add_masters(tasks)
    suggestions = validate_suggestions(parsed.suggestions)
    store.set_suggestions(suggestions)
    return CaptureResult(added=added, rejected=rejected, suggestions=suggestions)
