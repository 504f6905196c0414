"""SQLAlchemy database models for BalanceFlow."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON

from balanceflow.database.database import Base

DEFAULT_STATE_KEY = "default"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateDocumentDB(Base):
    """Whole persisted state as one backup-format JSON document.

    The store is the authority while the process runs; this row is rewritten
    after every mutation and read back once on startup.
    """

    __tablename__ = "state_documents"

    key = Column(String, primary_key=True, default=DEFAULT_STATE_KEY)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
