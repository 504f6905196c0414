"""Data models for BalanceFlow."""

from balanceflow.models.task import MasterTask, Priority, Recurrence
from balanceflow.models.occurrence import Occurrence, OccurrenceId, master_id_of
from balanceflow.models.suggestion import Suggestion, SuggestionType
from balanceflow.models.backup import BackupDocument
from balanceflow.models.notification import (
    CommandType,
    Notification,
    NotificationCommand,
    NotificationKind,
)

__all__ = [
    "MasterTask",
    "Priority",
    "Recurrence",
    "Occurrence",
    "OccurrenceId",
    "master_id_of",
    "Suggestion",
    "SuggestionType",
    "BackupDocument",
    "CommandType",
    "Notification",
    "NotificationCommand",
    "NotificationKind",
]
