"""Calendar-date helpers shared by the recurrence engine."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable

from balanceflow.models.constants import ISO_DATE_FORMAT


def local_date(dt: datetime, tz: tzinfo = timezone.utc) -> date:
    """Calendar date of an instant as seen in `tz`."""
    return dt.astimezone(tz).date()


def compose_on(day: date, anchor: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Anchor's local time-of-day placed on `day`."""
    local_anchor = anchor.astimezone(tz)
    return datetime.combine(day, local_anchor.time(), tzinfo=tz)


def start_of_day(day: date, tz: tzinfo = timezone.utc) -> datetime:
    return datetime.combine(day, datetime.min.time(), tzinfo=tz)


def iso_day(day: date) -> str:
    return day.strftime(ISO_DATE_FORMAT)


def daterange(start: date, end_inclusive: date) -> Iterable[date]:
    cur = start
    while cur <= end_inclusive:
        yield cur
        cur = cur + timedelta(days=1)
