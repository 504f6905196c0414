"""Recurrence predicate: does a master task occur on a given calendar date?"""

from __future__ import annotations

from datetime import date, timezone, tzinfo

from balanceflow.models.task import MasterTask, Recurrence
from balanceflow.recurrence.calendar import local_date


def occurs_on(master: MasterTask, day: date, tz: tzinfo = timezone.utc) -> bool:
    """Decide whether `master` has an occurrence on `day`.

    Dates are calendar dates in `tz`. A task without a start time never occurs.
    Monthly and yearly rules never clamp: a month without the anchor's
    day-of-month (e.g. the 31st, or Feb 29 outside leap years) simply has no
    occurrence.

    This function is pure - same inputs always produce the same output.
    """
    if master.start_time is None:
        return False

    anchor = local_date(master.start_time, tz)

    if master.recurrence == Recurrence.NONE:
        return day == anchor

    if day < anchor:
        return False

    if master.recurrence == Recurrence.DAILY:
        return True

    if master.recurrence == Recurrence.WEEKLY:
        return day.weekday() == anchor.weekday()

    if master.recurrence == Recurrence.MONTHLY:
        return day.day == anchor.day

    if master.recurrence == Recurrence.YEARLY:
        return (day.month, day.day) == (anchor.month, anchor.day)

    return False
