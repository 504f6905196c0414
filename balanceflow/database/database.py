"""Database connection and session management for BalanceFlow.

This module supports both:
- Local SQLite (default)
- PostgreSQL or any other SQLAlchemy URL via `DATABASE_URL`
"""

import os
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from balanceflow.config import get_settings

DATABASE_URL = get_settings().database_url


def _is_sqlite_url(database_url: str) -> bool:
    return "sqlite" in (database_url or "")


def get_engine_kwargs(database_url: str) -> dict:
    """Return deterministic create_engine kwargs for a DB URL.

    Kept separate so it can be unit tested without connecting.
    """
    engine_kwargs: dict = {
        "echo": get_settings().debug,
        "pool_pre_ping": True,
    }

    if _is_sqlite_url(database_url):
        # Required for FastAPI concurrency in a single process.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        return engine_kwargs

    engine_kwargs["pool_size"] = int(os.getenv("DB_POOL_SIZE", "5"))
    engine_kwargs["max_overflow"] = int(os.getenv("DB_MAX_OVERFLOW", "5"))
    engine_kwargs["pool_timeout"] = int(os.getenv("DB_POOL_TIMEOUT_SEC", "30"))
    return engine_kwargs


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, **get_engine_kwargs(database_url))


# Module-level singleton
engine = build_engine(DATABASE_URL)


@event.listens_for(engine, "connect")
def set_sqlite_pragmas(dbapi_conn, connection_record):
    """Enable WAL mode on SQLite so reads can proceed during a write."""
    if _is_sqlite_url(DATABASE_URL) and ":memory:" not in DATABASE_URL:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Session:
    """Get database session (dependency for FastAPI)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Create the schema. The state document table is the only table, so no migrations."""
    # Register models on Base.metadata
    from balanceflow.database import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
