"""Task data model for BalanceFlow."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Priority(str, Enum):
    """Task priority enumeration."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Recurrence(str, Enum):
    """Recurrence rule enumeration."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


PRIORITY_ORDER = {
    Priority.HIGH.value: 1,
    Priority.MEDIUM.value: 2,
    Priority.LOW.value: 3,
}


class MasterTask(BaseModel):
    """Persisted, user-authored task record (possibly recurring)."""

    id: str = Field(..., min_length=1, description="Unique task identifier, stable for the task's lifetime")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task details")
    start_time: Optional[datetime] = Field(
        None,
        alias="startTime",
        description="Start instant; None means unscheduled. For recurring tasks this is the anchor.",
    )
    duration: int = Field(30, ge=0, description="Duration in minutes")
    priority: Priority = Field(Priority.MEDIUM, description="Task priority")
    recurrence: Recurrence = Field(Recurrence.NONE, description="Recurrence rule")
    completed: bool = Field(False, description="Completion flag (non-recurring tasks only)")
    reminder: Optional[int] = Field(None, ge=0, description="Reminder lead time in minutes before start")
    is_holiday: bool = Field(False, alias="isHoliday", description="System-generated holiday task")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
        populate_by_name = True

    @field_validator("start_time")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are treated as UTC so every comparison is between aware datetimes.
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.NONE

    @property
    def is_scheduled(self) -> bool:
        return self.start_time is not None

    @property
    def end_time(self) -> Optional[datetime]:
        if self.start_time is None:
            return None
        return self.start_time + timedelta(minutes=self.duration)
