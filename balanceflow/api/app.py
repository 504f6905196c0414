"""FastAPI web application for BalanceFlow."""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from balanceflow import __version__
from balanceflow.config import get_settings
from balanceflow.database.database import SessionLocal, get_db, init_db
from balanceflow.database.repository import StateRepository
from balanceflow.engine.briefing import daily_briefing
from balanceflow.engine.commands import NotificationCommandHandler
from balanceflow.engine.gaps import time_filler_candidates
from balanceflow.engine.ingest import capture_text
from balanceflow.engine.notifications import OutboxNotificationSink
from balanceflow.engine.rebalance import apply_rebalance
from balanceflow.engine.reminders import ReminderScheduler
from balanceflow.engine.search import search_calendar
from balanceflow.errors import (
    AssistantResponseError,
    AssistantUnavailableError,
    BackupFormatError,
    HolidayTaskError,
)
from balanceflow.integrations.openai_client import OpenAIScheduleClient
from balanceflow.models.backup import BackupDocument
from balanceflow.models.notification import Notification, NotificationCommand
from balanceflow.models.occurrence import Occurrence
from balanceflow.models.suggestion import Suggestion
from balanceflow.models.task import MasterTask, Priority, Recurrence
from balanceflow.models.task_factory import create_master_task
from balanceflow.store.backup import parse_backup
from balanceflow.store.task_store import TaskStore

logger = logging.getLogger(__name__)

settings = get_settings()

# Process-wide state; the database only mirrors it.
store = TaskStore(
    tz=settings.tzinfo,
    undo_window_seconds=settings.undo_window_seconds,
    holidays_enabled=settings.holidays_enabled,
)
outbox = OutboxNotificationSink()
scheduler = ReminderScheduler(
    outbox,
    interval_seconds=settings.reminder_tick_seconds,
    snooze_rearms=settings.snooze_rearms,
    follow_ups_enabled=settings.follow_ups_enabled,
)
_assistant: Optional[OpenAIScheduleClient] = None


def _load_persisted_state() -> None:
    init_db()
    db = SessionLocal()
    try:
        document = StateRepository(db).load()
    finally:
        db.close()
    if document is not None:
        store.replace_state(document)
        logger.info(f"Loaded {len(document.tasks) + len(document.unscheduled_tasks)} task(s) from the database")


@asynccontextmanager
async def lifespan(app: FastAPI):
    _load_persisted_state()
    scheduler.update_snapshot(store.snapshot())
    scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()


app = FastAPI(
    title="BalanceFlow API",
    description="Personal scheduling core: recurring tasks, reminders and a balanced day",
    version=__version__,
    lifespan=lifespan,
)


# Dependencies (overridden in tests)
def get_store() -> TaskStore:
    return store


def get_scheduler() -> ReminderScheduler:
    return scheduler


def get_outbox() -> OutboxNotificationSink:
    return outbox


def get_assistant() -> OpenAIScheduleClient:
    global _assistant
    if _assistant is None:
        _assistant = OpenAIScheduleClient()
    return _assistant


def _after_mutation(task_store: TaskStore, task_scheduler: ReminderScheduler, db: Session) -> None:
    """Push a fresh snapshot to the scheduler and persist the state document."""
    task_scheduler.update_snapshot(task_store.snapshot())
    StateRepository(db).save(task_store.to_backup())


# Request models
class TaskCreateRequest(BaseModel):
    """Request to create a task."""
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    start_time: Optional[datetime] = Field(None, alias="startTime")
    duration: Optional[int] = Field(None, ge=0)
    priority: Optional[Priority] = None
    recurrence: Optional[Recurrence] = None
    reminder: Optional[int] = Field(None, ge=0)

    class Config:
        populate_by_name = True


class TaskUpdateRequest(BaseModel):
    """Request to update a task. `task_id` in the path may be an instance id."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    start_time: Optional[datetime] = Field(None, alias="startTime")
    duration: Optional[int] = Field(None, ge=0)
    priority: Optional[Priority] = None
    recurrence: Optional[Recurrence] = None
    reminder: Optional[int] = Field(None, ge=0)
    completed: Optional[bool] = None

    class Config:
        populate_by_name = True


class ScheduleRequest(BaseModel):
    """Request to place an unscheduled task on the timeline."""
    start_time: datetime = Field(..., alias="startTime")

    class Config:
        populate_by_name = True


class CaptureRequest(BaseModel):
    """Free text for the text-to-task assistant."""
    text: str = Field(..., min_length=1)


class SearchRequest(BaseModel):
    """Natural-language calendar query."""
    query: str = Field(..., min_length=1)


# Response models
class ToggleResponse(BaseModel):
    """Response for a completion toggle."""
    instance_id: str
    completed: bool


class DayResponse(BaseModel):
    """Response for a day view."""
    day: date
    occurrences: List[Occurrence]
    load_factor: float
    fillers: List[Suggestion]


class BriefingResponse(BaseModel):
    """Response for the daily briefing."""
    day: date
    top_tasks: List[Occurrence]
    open_count: int
    load_factor: float


class CaptureResponse(BaseModel):
    """Response for text capture."""
    added: List[MasterTask]
    rejected_count: int
    suggestions: List[Suggestion]


class RebalanceResponse(BaseModel):
    """Response for schedule rebalancing."""
    accepted: bool
    reason: Optional[str] = None
    tasks: List[MasterTask]


class SearchResponse(BaseModel):
    """Stored tasks and suggestions matching a search query."""
    tasks: List[MasterTask]
    suggestions: List[Suggestion]


class CommandResponse(BaseModel):
    """Response for a notification command."""
    handled: bool
    result: Optional[Any] = None


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {"status": "ok", "version": __version__, "scheduler_running": scheduler.running}


@app.post("/tasks", response_model=MasterTask, status_code=201)
def create_task(
    request: TaskCreateRequest,
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Create a task. Tasks without a start time land in the unscheduled list."""
    task = create_master_task(
        title=request.title,
        description=request.description,
        start_time=request.start_time,
        duration=request.duration,
        priority=request.priority,
        recurrence=request.recurrence,
        reminder=request.reminder,
    )
    task_store.add_masters([task])
    _after_mutation(task_store, task_scheduler, db)
    return task


@app.put("/tasks/{task_id}", response_model=MasterTask)
def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Update a task. Editing an occurrence edits the whole series.

    An instance id keeps the series anchor date and only applies the new
    time-of-day; a master id edits the master itself, anchor date included.
    """
    current = task_store.resolve_occurrence(task_id)
    if current is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    if current.occurrence_id is None and not current.is_holiday:
        current = task_store.get_master(current.id)

    changes = request.model_dump(exclude_unset=True)
    try:
        updated = task_store.update_master(current.model_copy(update=changes))
    except HolidayTaskError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    _after_mutation(task_store, task_scheduler, db)
    return updated


@app.delete("/tasks/{task_id}", response_model=MasterTask)
def delete_task(
    task_id: str,
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Delete a task (the whole series for recurring tasks). Undoable for a short window."""
    try:
        deleted = task_store.delete_master(task_id)
    except HolidayTaskError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if deleted is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    _after_mutation(task_store, task_scheduler, db)
    return deleted


@app.post("/tasks/undo", response_model=MasterTask)
def undo_delete(
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Restore the most recently deleted task."""
    restored = task_store.undo_delete()
    if restored is None:
        raise HTTPException(status_code=404, detail="Nothing to undo")
    _after_mutation(task_store, task_scheduler, db)
    return restored


@app.post("/tasks/{task_id}/schedule", response_model=MasterTask)
def schedule_task(
    task_id: str,
    request: ScheduleRequest,
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Move an unscheduled task onto the timeline."""
    scheduled = task_store.schedule_unscheduled(task_id, request.start_time)
    if scheduled is None:
        raise HTTPException(status_code=404, detail=f"Unscheduled task {task_id} not found")
    _after_mutation(task_store, task_scheduler, db)
    return scheduled


@app.post("/occurrences/{instance_id}/toggle", response_model=ToggleResponse)
def toggle_occurrence(
    instance_id: str,
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Flip completion of one occurrence."""
    occurrence = task_store.resolve_occurrence(instance_id)
    if occurrence is None:
        raise HTTPException(status_code=404, detail=f"Occurrence {instance_id} not found")
    if occurrence.is_holiday:
        raise HTTPException(status_code=400, detail="Holiday tasks cannot be completed")

    day = occurrence.occurrence_date or task_store.today()
    completed = task_store.toggle_completion(occurrence, day)
    if completed is None:
        raise HTTPException(status_code=404, detail=f"Occurrence {instance_id} not found")
    _after_mutation(task_store, task_scheduler, db)
    return ToggleResponse(instance_id=occurrence.key, completed=completed)


@app.get("/occurrences/{instance_id}", response_model=Occurrence)
def get_occurrence(instance_id: str, task_store: TaskStore = Depends(get_store)):
    """Resolve a master id or instance id to its occurrence."""
    occurrence = task_store.resolve_occurrence(instance_id)
    if occurrence is None:
        raise HTTPException(status_code=404, detail=f"Occurrence {instance_id} not found")
    return occurrence


@app.get("/days/{day}", response_model=DayResponse)
def view_day(day: date, task_store: TaskStore = Depends(get_store)):
    """Occurrences, load factor and filler ideas for one calendar day."""
    occurrences = task_store.occurrences_on(day)
    return DayResponse(
        day=day,
        occurrences=occurrences,
        load_factor=task_store.load_factor(day),
        fillers=time_filler_candidates(occurrences, day, today=task_store.today(), tz=task_store.tz),
    )


@app.get("/briefing", response_model=BriefingResponse)
def briefing(day: Optional[date] = None, task_store: TaskStore = Depends(get_store)):
    """Top open tasks for a day (today by default)."""
    result = daily_briefing(task_store, day or task_store.today())
    return BriefingResponse(
        day=result.day,
        top_tasks=result.top_tasks,
        open_count=result.open_count,
        load_factor=result.load,
    )


@app.post("/capture", response_model=CaptureResponse)
def capture(
    request: CaptureRequest,
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    assistant: OpenAIScheduleClient = Depends(get_assistant),
    db: Session = Depends(get_db),
):
    """Turn free text into tasks with the AI assistant."""
    try:
        result = capture_text(task_store, assistant, request.text)
    except AssistantUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AssistantResponseError as e:
        raise HTTPException(status_code=502, detail=str(e))
    _after_mutation(task_store, task_scheduler, db)
    return CaptureResponse(added=result.added, rejected_count=result.rejected, suggestions=result.suggestions)


@app.post("/rebalance", response_model=RebalanceResponse)
def rebalance(
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    assistant: OpenAIScheduleClient = Depends(get_assistant),
    db: Session = Depends(get_db),
):
    """Ask the AI assistant to spread the workload; rejected results change nothing."""
    try:
        outcome = apply_rebalance(task_store, assistant)
    except AssistantUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AssistantResponseError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if outcome.accepted:
        _after_mutation(task_store, task_scheduler, db)
    return RebalanceResponse(accepted=outcome.accepted, reason=outcome.reason, tasks=outcome.tasks)


@app.post("/search", response_model=SearchResponse)
def search(
    request: SearchRequest,
    task_store: TaskStore = Depends(get_store),
    assistant: OpenAIScheduleClient = Depends(get_assistant),
):
    """Search tasks and suggestions with the AI assistant."""
    try:
        result = search_calendar(task_store, assistant, request.query)
    except AssistantUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AssistantResponseError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return SearchResponse(tasks=result.tasks, suggestions=result.suggestions)


@app.get("/notifications", response_model=List[Notification])
def drain_notifications(sink: OutboxNotificationSink = Depends(get_outbox)):
    """Notifications fired since the last call."""
    return sink.drain()


@app.post("/notifications/commands", response_model=CommandResponse)
def notification_command(
    command: NotificationCommand,
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Apply a mark-done, snooze or focus action from a delivered notification."""
    handler = NotificationCommandHandler(
        task_store,
        task_scheduler,
        on_change=lambda: StateRepository(db).save(task_store.to_backup()),
    )
    result = handler.handle(command)
    if result is None or result is False:
        return CommandResponse(handled=False)
    if isinstance(result, Occurrence):
        result = result.model_dump(by_alias=True, mode="json")
    elif isinstance(result, datetime):
        result = result.isoformat()
    return CommandResponse(handled=True, result=result)


@app.get("/backup", response_model=BackupDocument, response_model_by_alias=True)
def backup(task_store: TaskStore = Depends(get_store)):
    """Export the full state as a backup document."""
    return task_store.to_backup()


@app.post("/restore", response_model=BackupDocument, response_model_by_alias=True)
def restore(
    payload: Dict[str, Any],
    task_store: TaskStore = Depends(get_store),
    task_scheduler: ReminderScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Replace the full state with a backup document. Invalid documents change nothing."""
    try:
        document = parse_backup(payload)
    except BackupFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    task_store.replace_state(document)
    logger.info(f"Restored backup with {len(document.tasks) + len(document.unscheduled_tasks)} task(s)")
    _after_mutation(task_store, task_scheduler, db)
    return task_store.to_backup()
