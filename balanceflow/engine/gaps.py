"""Gap detection: offer short filler ideas when the working day has idle time.

Advisory only - sampling is random and results need not be reproducible.
"""

import logging
import random
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional

from balanceflow.models.constants import (
    FILLER_SAMPLE_SIZE,
    FULL_DAY_MINUTES,
    MIN_GAP_MINUTES,
    WORKDAY_END,
    WORKDAY_START,
)
from balanceflow.models.occurrence import Occurrence
from balanceflow.models.suggestion import Suggestion, SuggestionType

logger = logging.getLogger(__name__)


FILLER_IDEAS: List[dict] = [
    {"type": SuggestionType.WELL_BEING, "title": "Take a 10-min walk", "details": "Stretch your legs and get some fresh air.", "duration": 10},
    {"type": SuggestionType.LEISURE, "title": "Tidy your desk", "details": "A tidy space for a tidy mind.", "duration": 15},
    {"type": SuggestionType.WELL_BEING, "title": "Prep a healthy snack", "details": "Grab an apple or some nuts.", "duration": 5},
    {"type": SuggestionType.WELL_BEING, "title": "Quick meditation session", "details": "Use a mindfulness app or just focus on your breath.", "duration": 10},
    {"type": SuggestionType.TASK_BREAKDOWN, "title": "Review tomorrow's plan", "details": "Briefly look at tomorrow's tasks.", "duration": 5},
    {"type": SuggestionType.LEISURE, "title": "Read an article", "details": "Catch up on industry news or a personal interest.", "duration": 20},
]


def _counts_for_gaps(occurrence: Occurrence) -> bool:
    return (
        occurrence.start_time is not None
        and not occurrence.is_holiday
        and occurrence.duration < FULL_DAY_MINUTES
    )


def has_significant_gap(
    occurrences: Iterable[Occurrence],
    day: date,
    today: Optional[date] = None,
    tz: tzinfo = timezone.utc,
) -> bool:
    """Whether the working window on `day` has an idle stretch of at least MIN_GAP_MINUTES.

    Holiday and full-day occurrences are ignored. The scan stops at the first
    qualifying gap; `last_event_end` only ever moves forward.
    """
    window_start = datetime.combine(day, WORKDAY_START, tzinfo=tz)
    window_end = datetime.combine(day, WORKDAY_END, tzinfo=tz)
    min_gap = timedelta(minutes=MIN_GAP_MINUTES)

    relevant = sorted(
        (o for o in occurrences if _counts_for_gaps(o)),
        key=lambda o: o.start_time,
    )

    if not relevant and today is not None and day == today:
        return True

    last_event_end = window_start
    for occurrence in relevant:
        if occurrence.start_time > window_end:
            continue
        if occurrence.start_time - last_event_end >= min_gap:
            return True
        last_event_end = max(last_event_end, occurrence.end_time)

    return window_end - last_event_end >= min_gap


def time_filler_candidates(
    occurrences: Iterable[Occurrence],
    day: date,
    today: Optional[date] = None,
    tz: tzinfo = timezone.utc,
    rng: Optional[random.Random] = None,
    sample_size: int = FILLER_SAMPLE_SIZE,
) -> List[Suggestion]:
    """Sample distinct filler ideas when `day` has a qualifying gap; empty otherwise."""
    if not has_significant_gap(occurrences, day, today=today, tz=tz):
        return []

    rng = rng or random.Random()
    picks = rng.sample(FILLER_IDEAS, k=min(sample_size, len(FILLER_IDEAS)))
    logger.debug(f"Gap found on {day.isoformat()}; offering {len(picks)} filler ideas")
    return [
        Suggestion(id=f"filler-{index}-{day.isoformat()}", **idea)
        for index, idea in enumerate(picks)
    ]
