"""Recurrence engine: predicate, materializer and generated holidays."""

from balanceflow.recurrence.predicate import occurs_on
from balanceflow.recurrence.materialize import (
    occurrences_between,
    occurrences_on,
    resolve_occurrence,
)

__all__ = [
    "occurs_on",
    "occurrences_on",
    "occurrences_between",
    "resolve_occurrence",
]
