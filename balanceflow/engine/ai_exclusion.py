"""AI exclusion enforcement for BalanceFlow.

Some tasks must never be sent to the AI collaborators. This module is the one
place that decides which, and must be consulted BEFORE building any AI context.
"""

from typing import Iterable, List, Tuple

from balanceflow.models.task import MasterTask


def is_ai_excluded(task: MasterTask) -> bool:
    """Check if a task is excluded from AI processing.

    A task is AI-excluded if:
    1. It is a generated holiday task
    2. OR its title begins with a period (`.`), the user's private marker

    Args:
        task: The task to check

    Returns:
        True if the task should be kept out of AI context, False otherwise
    """
    if task.is_holiday:
        return True

    if task.title.startswith('.'):
        return True

    return False


def filter_ai_excluded(tasks: Iterable[MasterTask]) -> Tuple[List[MasterTask], List[MasterTask]]:
    """Separate tasks into AI-allowed and AI-excluded lists.

    Args:
        tasks: Tasks to filter

    Returns:
        Tuple of (ai_allowed_tasks, ai_excluded_tasks)
    """
    ai_allowed = []
    ai_excluded = []

    for task in tasks:
        if is_ai_excluded(task):
            ai_excluded.append(task)
        else:
            ai_allowed.append(task)

    return ai_allowed, ai_excluded
