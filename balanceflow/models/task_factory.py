"""Task creation factory for BalanceFlow.

This module centralizes task creation logic so every entry point (API, text-to-task
collaborator, holiday generator) applies the same defaults.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from balanceflow.models.constants import DEFAULT_DURATION_MINUTES
from balanceflow.models.task import MasterTask, Priority, Recurrence


def create_task_defaults() -> Dict[str, Any]:
    """Get default task values as a dictionary."""
    return {
        "description": None,
        "start_time": None,
        "duration": DEFAULT_DURATION_MINUTES,
        "priority": Priority.MEDIUM,
        "recurrence": Recurrence.NONE,
        "completed": False,
        "reminder": None,
        "is_holiday": False,
    }


def create_master_task(
    title: str,
    description: Optional[str] = None,
    start_time: Optional[datetime] = None,
    duration: Optional[int] = None,
    priority: Optional[Priority] = None,
    recurrence: Optional[Recurrence] = None,
    reminder: Optional[int] = None,
    is_holiday: bool = False,
    task_id: Optional[str] = None,
) -> MasterTask:
    """Create a master task with defaults, allowing overrides.

    Args:
        title: Task title (required)
        description: Optional details
        start_time: Start instant / recurrence anchor; None leaves the task unscheduled
        duration: Duration in minutes (defaults to constant)
        priority: Task priority (defaults to Medium)
        recurrence: Recurrence rule (defaults to none)
        reminder: Reminder lead time in minutes
        is_holiday: Whether this is a generated holiday task
        task_id: Explicit id; a UUID4 is generated when omitted

    Returns:
        MasterTask with defaults applied
    """
    defaults = create_task_defaults()
    return MasterTask(
        id=task_id or str(uuid.uuid4()),
        title=title,
        description=description if description is not None else defaults["description"],
        start_time=start_time if start_time is not None else defaults["start_time"],
        duration=duration if duration is not None else defaults["duration"],
        priority=priority if priority is not None else defaults["priority"],
        recurrence=recurrence if recurrence is not None else defaults["recurrence"],
        completed=defaults["completed"],
        reminder=reminder if reminder is not None else defaults["reminder"],
        is_holiday=is_holiday,
    )
