"""Natural-language calendar search through the AI collaborator.

The collaborator sees the backup document with AI-excluded tasks removed and
answers with the items that match a query. Only items whose id names a stored
task or suggestion are kept, and the stored record is returned rather than the
collaborator's copy.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol

from balanceflow.engine.ai_exclusion import filter_ai_excluded
from balanceflow.models.backup import BackupDocument
from balanceflow.models.suggestion import Suggestion
from balanceflow.models.task import MasterTask
from balanceflow.store.task_store import TaskStore

logger = logging.getLogger(__name__)


class CalendarSearcher(Protocol):
    """Search collaborator."""

    def search(self, query: str, document: BackupDocument) -> List[Dict[str, Any]]:
        ...


@dataclass
class SearchResult:
    tasks: List[MasterTask] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)
    rejected: int = 0


def search_context(store: TaskStore) -> BackupDocument:
    """The store's backup document without AI-excluded tasks or their ledger entries."""
    document = store.to_backup()
    tasks, excluded = filter_ai_excluded(document.tasks)
    unscheduled, excluded_unscheduled = filter_ai_excluded(document.unscheduled_tasks)
    hidden = {t.id for t in excluded + excluded_unscheduled}
    return BackupDocument(
        tasks=tasks,
        unscheduled_tasks=unscheduled,
        suggestions=document.suggestions,
        completed_occurrences={k: v for k, v in document.completed_occurrences.items() if k not in hidden},
    )


def match_results(document: BackupDocument, items: Iterable[Any]) -> SearchResult:
    """Map raw collaborator items back onto the records in `document`.

    Items that are not objects, carry no id, or name something the collaborator
    was never shown are dropped. Duplicates collapse to the first hit.
    """
    tasks_by_id = {t.id: t for t in document.tasks + document.unscheduled_tasks}
    suggestions_by_id = {s.id: s for s in document.suggestions}

    result = SearchResult()
    seen = set()
    for raw in items:
        item_id = raw.get("id") if isinstance(raw, dict) else None
        if not isinstance(item_id, str) or (item_id not in tasks_by_id and item_id not in suggestions_by_id):
            result.rejected += 1
            continue
        if item_id in seen:
            continue
        seen.add(item_id)
        if item_id in tasks_by_id:
            result.tasks.append(tasks_by_id[item_id])
        else:
            result.suggestions.append(suggestions_by_id[item_id])

    if result.rejected:
        logger.warning(f"Assistant returned {result.rejected} unknown search result(s); they were dropped")
    return result


def search_calendar(store: TaskStore, searcher: CalendarSearcher, query: str) -> SearchResult:
    """Run a natural-language query over the calendar."""
    document = search_context(store)
    items = searcher.search(query, document)
    if not isinstance(items, list):
        logger.warning("Assistant search result is not a list; treating it as empty")
        items = []
    result = match_results(document, items)
    logger.debug(f"Search matched {len(result.tasks)} task(s) and {len(result.suggestions)} suggestion(s)")
    return result
