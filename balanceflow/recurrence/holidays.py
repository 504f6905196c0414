"""System-generated US federal holiday tasks."""

from __future__ import annotations

import re
from datetime import date, timedelta, timezone, tzinfo
from typing import Iterable, List

from balanceflow.models.constants import FULL_DAY_MINUTES
from balanceflow.models.task import MasterTask, Priority, Recurrence
from balanceflow.models.task_factory import create_master_task
from balanceflow.recurrence.calendar import start_of_day

MONDAY, THURSDAY = 0, 3


def _nth_weekday(n: int, weekday: int, month: int, year: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _last_weekday(weekday: int, month: int, year: int) -> date:
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def _slug(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def _holiday_task(year: int, title: str, day: date, tz: tzinfo) -> MasterTask:
    return create_master_task(
        task_id=f"holiday-{_slug(title)}-{year}",
        title=title,
        start_time=start_of_day(day, tz),
        duration=FULL_DAY_MINUTES,
        priority=Priority.HIGH,
        recurrence=Recurrence.NONE,
        is_holiday=True,
    )


def us_federal_holidays(year: int, tz: tzinfo = timezone.utc) -> List[MasterTask]:
    """Holiday tasks for one year, in calendar order."""
    days = [
        ("New Year's Day", date(year, 1, 1)),
        ("Martin Luther King, Jr. Day", _nth_weekday(3, MONDAY, 1, year)),
        ("Presidents' Day", _nth_weekday(3, MONDAY, 2, year)),
        ("Memorial Day", _last_weekday(MONDAY, 5, year)),
        ("Independence Day", date(year, 7, 4)),
        ("Labor Day", _nth_weekday(1, MONDAY, 9, year)),
        ("Columbus Day", _nth_weekday(2, MONDAY, 10, year)),
        ("Veterans Day", date(year, 11, 11)),
        ("Thanksgiving Day", _nth_weekday(4, THURSDAY, 11, year)),
        ("Christmas Day", date(year, 12, 25)),
    ]
    return [_holiday_task(year, title, day, tz) for title, day in days]


def holidays_for_years(years: Iterable[int], tz: tzinfo = timezone.utc) -> List[MasterTask]:
    out: List[MasterTask] = []
    for year in years:
        out.extend(us_federal_holidays(year, tz))
    return out
