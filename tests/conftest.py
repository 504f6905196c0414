"""Pytest fixtures and configuration for BalanceFlow tests."""

import os

# Must be set before balanceflow.config builds its settings.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from balanceflow.database.database import Base, get_db
from balanceflow.engine.ingest import ParsedSchedule
from balanceflow.engine.notifications import OutboxNotificationSink
from balanceflow.engine.reminders import ReminderScheduler
from balanceflow.models.task import MasterTask
from balanceflow.store.task_store import TaskStore


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

UTC = timezone.utc

# Monday
FIXED_NOW = datetime(2024, 7, 1, 8, 0, tzinfo=UTC)


class FakeMonotonic:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeAssistant:
    """Stand-in for the OpenAI collaborators; records what it was sent."""

    def __init__(self):
        self.parsed = ParsedSchedule()
        self.rebalanced = None
        self.parse_calls = []
        self.rebalance_calls = []
        self.search_results = []
        self.search_calls = []
        self.error = None

    def parse_and_schedule(self, text, existing_tasks):
        self.parse_calls.append((text, list(existing_tasks)))
        if self.error is not None:
            raise self.error
        return self.parsed

    def rebalance(self, tasks):
        self.rebalance_calls.append(list(tasks))
        if self.error is not None:
            raise self.error
        if self.rebalanced is None:
            return [t.model_dump(by_alias=True, mode="json") for t in tasks]
        return self.rebalanced

    def search(self, query, document):
        self.search_calls.append((query, document))
        if self.error is not None:
            raise self.error
        return self.search_results


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now):
    """Mutable clock: `clock.now` can be reassigned by a test."""

    class _Clock:
        def __init__(self, now):
            self.now = now

        def __call__(self):
            return self.now

    return _Clock(fixed_now)


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def sample_task_base():
    """Base task data for creating test tasks.

    Returns a dict in wire format that can be overridden.
    """
    return {
        "id": "t1",
        "title": "Test Task",
        "description": "Test description",
        "startTime": "2024-07-01T10:00:00Z",
        "duration": 60,
        "priority": "Medium",
        "recurrence": "none",
        "completed": False,
        "reminder": None,
        "isHoliday": False,
    }


@pytest.fixture
def make_task(sample_task_base):
    """Factory: make_task(id="x", recurrence="weekly", ...) -> MasterTask."""

    def _make(**overrides) -> MasterTask:
        data = dict(sample_task_base)
        data.update(overrides)
        return MasterTask.model_validate(data)

    return _make


@pytest.fixture
def sample_task(make_task):
    """Create a sample one-off MasterTask."""
    return make_task()


@pytest.fixture
def weekly_task(make_task):
    """Weekly master anchored Monday 2024-07-01 10:00 UTC."""
    return make_task(recurrence="weekly")


@pytest.fixture
def store(clock, monotonic):
    """Task store without generated holidays."""
    return TaskStore(clock=clock, monotonic=monotonic, holidays_enabled=False)


@pytest.fixture
def holiday_store(clock, monotonic):
    """Task store with generated holidays."""
    return TaskStore(clock=clock, monotonic=monotonic, holidays_enabled=True)


@pytest.fixture
def outbox():
    return OutboxNotificationSink()


@pytest.fixture
def scheduler(outbox, clock):
    return ReminderScheduler(outbox, clock=clock)


@pytest.fixture
def fake_assistant():
    return FakeAssistant()


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    from balanceflow.database import models  # noqa: F401

    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def test_client(db_session: Session, store, outbox, scheduler, fake_assistant, monkeypatch):
    """Create a FastAPI test client with overridden dependencies."""
    from balanceflow.api import app as app_module
    from balanceflow.api.app import app, get_store, get_scheduler, get_outbox, get_assistant

    # Lifespan reads persisted state through these
    monkeypatch.setattr(app_module, "init_db", lambda: None)
    monkeypatch.setattr(app_module, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(db_session, "close", lambda: None)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    app.dependency_overrides[get_outbox] = lambda: outbox
    app.dependency_overrides[get_assistant] = lambda: fake_assistant

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
