"""Backup document model (the persisted state layout)."""

from datetime import date
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

from balanceflow.models.suggestion import Suggestion
from balanceflow.models.task import MasterTask


class BackupDocument(BaseModel):
    """Full persisted state: four required top-level fields.

    Field names on the wire match the original application's backup files.
    """

    tasks: List[MasterTask] = Field(..., description="Scheduled master tasks")
    unscheduled_tasks: List[MasterTask] = Field(..., alias="unscheduledTasks")
    suggestions: List[Suggestion] = Field(...)
    completed_occurrences: Dict[str, List[str]] = Field(..., alias="completedOccurrences")

    class Config:
        """Pydantic configuration."""
        populate_by_name = True

    @field_validator("completed_occurrences")
    @classmethod
    def _validate_dates(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for master_id, days in v.items():
            for day in days:
                try:
                    date.fromisoformat(day)
                except ValueError:
                    raise ValueError(f"invalid completion date {day!r} for task {master_id}")
        return v

    @model_validator(mode="after")
    def _validate_partitions(self) -> "BackupDocument":
        for task in self.tasks:
            if task.start_time is None:
                raise ValueError(f"scheduled task {task.id} has no startTime")
        for task in self.unscheduled_tasks:
            if task.start_time is not None:
                raise ValueError(f"unscheduled task {task.id} has a startTime")
        ids = [t.id for t in self.tasks] + [t.id for t in self.unscheduled_tasks]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate task ids in backup")
        return self
