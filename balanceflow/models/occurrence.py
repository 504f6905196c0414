"""Occurrence model: a master task projected onto one calendar date."""

from __future__ import annotations

import re
from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator

from balanceflow.models.constants import INSTANCE_ID_SEPARATOR
from balanceflow.models.task import MasterTask

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class OccurrenceId(BaseModel):
    """Tagged identifier of one occurrence of a recurring master.

    The string form is ``"<master_id>_<yyyy-MM-dd>"``. Parsing splits on the last
    separator and requires a real ISO date suffix, so master ids that contain the
    separator themselves round-trip unchanged.
    """

    master_id: str = Field(..., min_length=1)
    on_date: date

    class Config:
        frozen = True

    def __str__(self) -> str:
        return f"{self.master_id}{INSTANCE_ID_SEPARATOR}{self.on_date.isoformat()}"

    @classmethod
    def parse(cls, raw: str) -> Optional["OccurrenceId"]:
        """Parse the string form; None if `raw` is not a composite instance id."""
        if not raw or INSTANCE_ID_SEPARATOR not in raw:
            return None
        master_id, _, suffix = raw.rpartition(INSTANCE_ID_SEPARATOR)
        if not master_id or not _ISO_DATE_RE.match(suffix):
            return None
        try:
            on_date = date.fromisoformat(suffix)
        except ValueError:
            return None
        return cls(master_id=master_id, on_date=on_date)


TaskRef = Union[str, OccurrenceId]


def master_id_of(ref: TaskRef) -> str:
    """Resolve a master id from a plain id, a composite instance id string or an OccurrenceId."""
    if isinstance(ref, OccurrenceId):
        return ref.master_id
    parsed = OccurrenceId.parse(ref)
    return parsed.master_id if parsed else ref


class Occurrence(MasterTask):
    """Virtual, date-specific projection of a master task. Never persisted.

    `id` always holds the master id. Non-recurring tasks are their own sole
    occurrence and carry no `occurrence_id`.
    """

    occurrence_id: Optional[OccurrenceId] = Field(None, alias="instanceId")
    occurrence_date: Optional[date] = Field(None, alias="occurrenceDate")

    @field_validator("occurrence_id", mode="before")
    @classmethod
    def _parse_occurrence_id(cls, v):
        if isinstance(v, str):
            parsed = OccurrenceId.parse(v)
            if parsed is None:
                raise ValueError(f"not an occurrence id: {v!r}")
            return parsed
        return v

    @field_serializer("occurrence_id")
    def _serialize_occurrence_id(self, v: Optional[OccurrenceId]) -> Optional[str]:
        return str(v) if v is not None else None

    @property
    def key(self) -> str:
        """Stable per-day handle: the instance id for recurring tasks, the master id otherwise."""
        return str(self.occurrence_id) if self.occurrence_id is not None else self.id

    @classmethod
    def of_master(cls, master: MasterTask, on_date: Optional[date] = None) -> "Occurrence":
        """View a non-recurring master as its own occurrence."""
        data = master.model_dump()
        data["occurrence_date"] = on_date
        return cls.model_validate(data)
