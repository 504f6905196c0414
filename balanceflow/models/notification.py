"""Notification models exchanged with the delivery collaborator."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from balanceflow.models.occurrence import Occurrence


class NotificationKind(str, Enum):
    """What kind of notification is being delivered."""
    REMINDER = "reminder"
    FOLLOW_UP = "follow-up"


class Notification(BaseModel):
    """A notification decided by the reminder scheduler."""

    kind: NotificationKind
    key: str = Field(..., description="Occurrence key (instance id or master id)")
    occurrence: Occurrence
    fired_at: datetime

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class CommandType(str, Enum):
    """User actions relayed back from a delivered notification."""
    COMPLETE = "complete"
    SNOOZE = "snooze"
    FOCUS = "focus"


class NotificationCommand(BaseModel):
    """Discrete command sent by the delivery collaborator."""

    type: CommandType
    task_id: str = Field(..., alias="taskId", description="Instance id or master id")
    snooze_minutes: Optional[int] = Field(None, alias="snoozeMinutes", gt=0)

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
        populate_by_name = True
