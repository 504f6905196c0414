"""Repository layer for database operations."""

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from balanceflow.database.models import DEFAULT_STATE_KEY, StateDocumentDB
from balanceflow.models.backup import BackupDocument

logger = logging.getLogger(__name__)


class StateRepository:
    """Repository for the persisted state document."""

    def __init__(self, db: Session, key: str = DEFAULT_STATE_KEY):
        self.db = db
        self.key = key

    def save(self, document: BackupDocument) -> None:
        """Insert or overwrite the state document."""
        payload = document.model_dump(by_alias=True, mode="json")
        try:
            row = self.db.get(StateDocumentDB, self.key)
            if row is None:
                self.db.add(StateDocumentDB(key=self.key, payload=payload))
            else:
                row.payload = payload
            self.db.commit()
            logger.debug(
                f"Saved state {self.key}: {len(document.tasks)} scheduled, "
                f"{len(document.unscheduled_tasks)} unscheduled"
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to save state {self.key}: {type(e).__name__}: {str(e)}")
            raise

    def load(self) -> Optional[BackupDocument]:
        """Read the state document back. A corrupt row is logged and ignored."""
        row = self.db.get(StateDocumentDB, self.key)
        if row is None:
            return None
        try:
            return BackupDocument.model_validate(row.payload)
        except ValidationError as e:
            logger.error(f"Stored state {self.key} is invalid ({e.error_count()} problem(s)); starting empty")
            return None

    def clear(self) -> bool:
        row = self.db.get(StateDocumentDB, self.key)
        if row is None:
            return False
        try:
            self.db.delete(row)
            self.db.commit()
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to clear state {self.key}: {type(e).__name__}")
            raise
