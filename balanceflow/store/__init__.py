"""Task store, completion ledger, undo slot and backup codec."""

from balanceflow.store.ledger import CompletedOccurrenceLedger
from balanceflow.store.task_store import ScheduleSnapshot, TaskStore
from balanceflow.store.undo import UndoSlot

__all__ = [
    "CompletedOccurrenceLedger",
    "ScheduleSnapshot",
    "TaskStore",
    "UndoSlot",
]
