"""Suggestion model for BalanceFlow."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SuggestionType(str, Enum):
    """Suggestion category enumeration."""
    MEAL = "meal"
    HOLIDAY_ACTIVITY = "holiday_activity"
    TASK_BREAKDOWN = "task_breakdown"
    WELL_BEING = "well-being"
    SOCIAL = "social"
    LEISURE = "leisure"


class Suggestion(BaseModel):
    """A categorized idea. Carries no scheduling semantics until promoted to a task."""

    id: str = Field(..., description="Suggestion identifier")
    type: SuggestionType = Field(..., description="Suggestion category")
    title: str = Field(..., description="Short title")
    details: Optional[str] = Field(None, description="Longer explanation")
    duration: Optional[int] = Field(None, ge=0, description="Suggested duration in minutes")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
