"""Backup and restore of the full task store state."""

import json
import logging
from typing import Union

from pydantic import ValidationError

from balanceflow.errors import BackupFormatError
from balanceflow.models.backup import BackupDocument
from balanceflow.store.task_store import TaskStore

logger = logging.getLogger(__name__)


def dump_backup(store: TaskStore) -> str:
    """Serialize the store's persisted state as a pretty-printed JSON document."""
    document = store.to_backup()
    return json.dumps(document.model_dump(mode="json", by_alias=True), indent=2)


def parse_backup(raw: Union[str, bytes, dict]) -> BackupDocument:
    """Validate a backup document. Raises BackupFormatError on any problem."""
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except json.JSONDecodeError as e:
        raise BackupFormatError(f"Invalid backup file format: {e.msg}") from e
    if not isinstance(data, dict):
        raise BackupFormatError("Invalid backup file format: expected a JSON object")
    try:
        return BackupDocument.model_validate(data)
    except ValidationError as e:
        raise BackupFormatError(f"Invalid backup file format: {e.error_count()} problem(s) found") from e


def restore_backup(store: TaskStore, raw: Union[str, bytes, dict]) -> BackupDocument:
    """Replace the store's state with a backup document, atomically.

    The document is fully validated before anything is replaced; on failure the
    store is left untouched.
    """
    document = parse_backup(raw)
    store.replace_state(document)
    logger.info(
        f"Restored backup: {len(document.tasks)} scheduled, "
        f"{len(document.unscheduled_tasks)} unscheduled, "
        f"{len(document.completed_occurrences)} ledger entries"
    )
    return document
