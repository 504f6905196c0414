"""Scheduling engine for BalanceFlow."""

from balanceflow.engine.ai_exclusion import is_ai_excluded, filter_ai_excluded
from balanceflow.engine.gaps import has_significant_gap, time_filler_candidates
from balanceflow.engine.reminders import NotifiedStore, ReminderScheduler, SnoozeTable
from balanceflow.engine.rebalance import RebalanceOutcome, apply_rebalance
from balanceflow.engine.search import SearchResult, search_calendar

__all__ = [
    "is_ai_excluded",
    "filter_ai_excluded",
    "has_significant_gap",
    "time_filler_candidates",
    "NotifiedStore",
    "ReminderScheduler",
    "SnoozeTable",
    "RebalanceOutcome",
    "apply_rebalance",
    "SearchResult",
    "search_calendar",
]
