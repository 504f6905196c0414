"""Materialize master tasks into concrete dated occurrences.

Occurrences are virtual: they are derived on demand from the master records and
the completed-occurrence ledger and are never stored.
"""

from __future__ import annotations

from datetime import date, timezone, tzinfo
from typing import Collection, Iterable, List, Mapping, Optional

from balanceflow.models.occurrence import Occurrence, OccurrenceId, TaskRef
from balanceflow.models.task import MasterTask
from balanceflow.recurrence.calendar import compose_on, daterange, iso_day, local_date
from balanceflow.recurrence.predicate import occurs_on

LedgerView = Mapping[str, Collection[str]]

_EMPTY_LEDGER: LedgerView = {}


def project_occurrence(
    master: MasterTask,
    day: date,
    ledger: Optional[LedgerView] = None,
    tz: tzinfo = timezone.utc,
) -> Occurrence:
    """Synthesize the occurrence of a recurring master on `day`.

    Does not check the predicate; callers do.
    """
    ledger = ledger if ledger is not None else _EMPTY_LEDGER
    data = master.model_dump()
    data.update(
        start_time=compose_on(day, master.start_time, tz),
        completed=iso_day(day) in ledger.get(master.id, ()),
        occurrence_id=OccurrenceId(master_id=master.id, on_date=day),
        occurrence_date=day,
    )
    return Occurrence.model_validate(data)


def occurrences_on(
    masters: Iterable[MasterTask],
    day: date,
    ledger: Optional[LedgerView] = None,
    tz: tzinfo = timezone.utc,
) -> List[Occurrence]:
    """All occurrences on `day`, ordered by start time.

    Non-recurring masters are included verbatim when they start on `day`;
    recurring masters get a synthesized occurrence when the predicate holds.
    Ties keep the input order of the masters (stable sort).
    """
    out: List[Occurrence] = []
    for master in masters:
        if master.start_time is None:
            continue
        if not master.is_recurring:
            if local_date(master.start_time, tz) == day:
                out.append(Occurrence.of_master(master, day))
        elif occurs_on(master, day, tz):
            out.append(project_occurrence(master, day, ledger, tz))
    out.sort(key=lambda o: o.start_time)
    return out


def occurrences_between(
    masters: Iterable[MasterTask],
    start_day: date,
    end_day: date,
    ledger: Optional[LedgerView] = None,
    tz: tzinfo = timezone.utc,
) -> List[Occurrence]:
    """Occurrences for every day in [start_day, end_day], day by day."""
    masters = list(masters)
    out: List[Occurrence] = []
    for day in daterange(start_day, end_day):
        out.extend(occurrences_on(masters, day, ledger, tz))
    return out


def resolve_occurrence(
    masters: Iterable[MasterTask],
    ref: TaskRef,
    ledger: Optional[LedgerView] = None,
    tz: tzinfo = timezone.utc,
) -> Optional[Occurrence]:
    """Look up an occurrence by master id or instance id.

    A plain master id returns the master's own view (no synthetic id). A
    composite id is inverted into (master id, date) and the synthesis is re-run;
    returns None if the master is gone or its rule no longer produces that date.
    """
    by_id = {m.id: m for m in masters}

    if isinstance(ref, str) and ref in by_id:
        return Occurrence.of_master(by_id[ref])

    occ_id = ref if isinstance(ref, OccurrenceId) else OccurrenceId.parse(ref)
    if occ_id is None:
        return None

    master = by_id.get(occ_id.master_id)
    if master is None or not occurs_on(master, occ_id.on_date, tz):
        return None
    if not master.is_recurring:
        return Occurrence.of_master(master, occ_id.on_date)
    return project_occurrence(master, occ_id.on_date, ledger, tz)
