"""OpenAI API integration for BalanceFlow.

This module implements the AI collaborators used by the scheduling core:
text-to-task parsing (free text into task-shaped dicts plus suggestions),
schedule rebalancing (new start times for an existing set of tasks) and
natural-language search over the user's calendar data.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from openai import OpenAI, APIError

from balanceflow.config import get_settings
from balanceflow.engine.ingest import ParsedSchedule
from balanceflow.errors import AssistantResponseError, AssistantUnavailableError
from balanceflow.models.backup import BackupDocument
from balanceflow.models.task import MasterTask

logger = logging.getLogger(__name__)

# Parsing prompt template
PARSE_PROMPT_TEMPLATE = """You are the scheduling assistant of BalanceFlow, a personal calendar app.
Turn the user's input into structured tasks and place each one in the existing schedule.

Rules:
- Assign a priority of 'High', 'Medium' or 'Low' and estimate a duration in minutes.
- Break large goals ("plan my vacation") into concrete sub-tasks spread over several days.
- Place tasks in free slots, avoid overlaps and keep each day's workload reasonable.
- Do not schedule work on holidays.
- Tasks without a clear time ("call mom sometime") get "startTime": null.
- Recurring tasks use 'daily', 'weekly', 'monthly' or 'yearly'. A recurring task with
  several times a day becomes one task per time.
- Add short suggestions (meals, breaks, leisure) where the schedule is busy.

Current date: {now}
Existing schedule (context only, do not return these):
{existing}

Respond with a single JSON object:
{{"schedule": [{{"title": str, "description": str, "startTime": ISO-8601 str or null,
  "duration": int, "priority": "High"|"Medium"|"Low",
  "recurrence": "none"|"daily"|"weekly"|"monthly"|"yearly", "reminder": int}}],
 "suggestions": [{{"type": "meal"|"holiday_activity"|"task_breakdown"|"well-being"|"social"|"leisure",
  "title": str, "details": str, "duration": int}}]}}

User input:
"{text}"
"""

# Rebalance prompt template
REBALANCE_PROMPT_TEMPLATE = """You are the calendar optimization engine of BalanceFlow.
Rebalance the schedule below so that no day exceeds about 420 minutes of work (never 540).

Rules:
- Never move High priority tasks, recurring tasks or fixed appointments.
- Move flexible tasks from overloaded days to lighter days within the next two weeks,
  between 9 AM and 6 PM, smaller tasks first.
- Only change "startTime". Keep every "id" and every other property unchanged.
- Return every task you received, moved or not.

Current date: {now}
Schedule:
{tasks}

Respond with a single JSON array of task objects, for example
[{{"id": "abc-123", "startTime": "2024-07-08T10:00:00Z", ...}}]
"""

# Search prompt template
SEARCH_PROMPT_TEMPLATE = """You are the search engine of BalanceFlow, a personal calendar app.
Find every item in the user's data that matches the query.

Rules:
- Resolve relative times ("last weekend", "from March", "next month") against the current date.
- Filter by properties when asked: duration, priority, recurrence ("recurring tasks").
- "meal ideas" or "suggestions" search the suggestions; "tasks" search tasks and unscheduledTasks.
- Match keywords against title and description.
- A recurring task that matches within a timeframe is returned as its master task object.
- Return the original objects unchanged. Never invent ids.

Current date: {now}
User data:
{data}

Query: "{query}"

Respond with a single JSON object: {{"results": [task or suggestion objects]}}
"""


def _task_context(task: MasterTask, keep_id: bool) -> Dict[str, Any]:
    data = task.model_dump(by_alias=True, mode="json", exclude={"completed", "is_holiday"})
    if not keep_id:
        data.pop("id", None)
    return data


def strip_code_fences(content: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


class OpenAIScheduleClient:
    """Client for OpenAI API integration."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        client: Optional[Any] = None,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. If None, read from settings (OPENAI_API_KEY).
            model: Chat model name. If None, read from settings (OPENAI_MODEL).
            clock: Source of the current time given to the model.
            client: Pre-built OpenAI client (tests pass a fake here).

        Note:
            Without an API key the client still initializes, but every call raises
            AssistantUnavailableError.
        """
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self.clock = clock
        self.client = client

        if self.client is None:
            if self.api_key:
                self.client = OpenAI(api_key=self.api_key)
            else:
                logger.warning("OPENAI_API_KEY not found in environment. AI features will not be available.")

    @property
    def available(self) -> bool:
        return self.client is not None

    def _complete(self, system: str, prompt: str, purpose: str) -> Any:
        if not self.client:
            raise AssistantUnavailableError("AI assistant is not configured")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
            )
            content = strip_code_fences(response.choices[0].message.content or "")
        except APIError as e:
            error_code = getattr(e, 'code', None)
            status_code = getattr(e, 'status_code', None)

            if error_code == 'insufficient_quota':
                logger.warning(f"OpenAI API quota insufficient for {purpose}. Please check billing in the OpenAI dashboard.")
            elif status_code == 429:
                logger.warning(f"OpenAI API rate limit exceeded for {purpose}. Please wait before retrying.")
            else:
                logger.error(f"OpenAI API error during {purpose}: {status_code or 'unknown'} ({error_code or 'unknown'})")
            # Full error message may contain sensitive info
            raise AssistantResponseError(f"The AI assistant failed during {purpose}") from e

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse OpenAI JSON response for {purpose}: {e}")
            raise AssistantResponseError("The AI assistant returned an invalid response") from e

    def parse_and_schedule(self, text: str, existing_tasks: List[MasterTask]) -> ParsedSchedule:
        """Turn free text into task-shaped dicts and suggestions.

        `existing_tasks` must already have AI-excluded tasks removed.

        Raises:
            AssistantUnavailableError: no API key configured
            AssistantResponseError: API failure or malformed response
        """
        prompt = PARSE_PROMPT_TEMPLATE.format(
            now=self.clock().isoformat(),
            existing=json.dumps([_task_context(t, keep_id=False) for t in existing_tasks], indent=2),
            text=text,
        )
        result = self._complete(
            "You are a task scheduling assistant. Respond only with valid JSON.", prompt, "task parsing"
        )
        if not isinstance(result, dict):
            raise AssistantResponseError("The AI assistant returned an invalid response")

        schedule = [t for t in (result.get("schedule") or []) if isinstance(t, dict)]
        suggestions = [s for s in (result.get("suggestions") or []) if isinstance(s, dict)]
        parsed = ParsedSchedule(
            scheduled_tasks=[t for t in schedule if t.get("startTime")],
            unscheduled_tasks=[t for t in schedule if not t.get("startTime")],
            suggestions=suggestions,
        )
        logger.debug(
            f"OpenAI parsed {len(parsed.scheduled_tasks)} scheduled, "
            f"{len(parsed.unscheduled_tasks)} unscheduled task(s)"
        )
        return parsed

    def rebalance(self, tasks: List[MasterTask]) -> List[Dict[str, Any]]:
        """Ask the model for new start times. The result is verified by the caller."""
        prompt = REBALANCE_PROMPT_TEMPLATE.format(
            now=self.clock().isoformat(),
            tasks=json.dumps([_task_context(t, keep_id=True) for t in tasks], indent=2),
        )
        result = self._complete(
            "You are a calendar optimization engine. Respond only with a valid JSON array.", prompt, "rebalancing"
        )
        if isinstance(result, dict) and isinstance(result.get("tasks"), list):
            result = result["tasks"]
        return result

    def search(self, query: str, document: BackupDocument) -> List[Dict[str, Any]]:
        """Ask the model which tasks and suggestions in `document` match `query`.

        `document` must already have AI-excluded tasks removed. The returned
        items are raw dicts; the caller maps them back onto stored records.
        """
        prompt = SEARCH_PROMPT_TEMPLATE.format(
            now=self.clock().isoformat(),
            data=json.dumps(document.model_dump(by_alias=True, mode="json"), indent=2),
            query=query,
        )
        result = self._complete(
            "You are a calendar search engine. Respond only with valid JSON.", prompt, "search"
        )
        if isinstance(result, dict):
            result = result.get("results") or []
        if not isinstance(result, list):
            raise AssistantResponseError("The AI assistant returned an invalid response")
        logger.debug(f"OpenAI search returned {len(result)} item(s)")
        return result
