"""Tests for the OpenAI collaborator client (no network)."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest
from openai import APIError

from balanceflow.errors import AssistantResponseError, AssistantUnavailableError
from balanceflow.integrations.openai_client import OpenAIScheduleClient, strip_code_fences
from balanceflow.models.backup import BackupDocument

UTC = timezone.utc


def _fake_openai(content: str) -> MagicMock:
    client = MagicMock()
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    client.chat.completions.create.return_value = response
    return client


def _client(fake) -> OpenAIScheduleClient:
    return OpenAIScheduleClient(
        api_key="test-key",
        model="test-model",
        clock=lambda: datetime(2024, 7, 1, 8, 0, tzinfo=UTC),
        client=fake,
    )


class TestStripCodeFences:
    """Markdown fences around JSON are removed."""

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_code_fences("```\n[]\n```") == "[]"

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestParseAndSchedule:
    """parse_and_schedule() splits the model's schedule by start time."""

    def test_splits_scheduled_and_unscheduled(self, make_task):
        payload = {
            "schedule": [
                {"title": "Dentist", "startTime": "2024-07-03T14:00:00Z", "duration": 45},
                {"title": "Call mom", "startTime": None},
            ],
            "suggestions": [{"type": "meal", "title": "Soup"}],
        }
        fake = _fake_openai("```json\n" + json.dumps(payload) + "\n```")

        parsed = _client(fake).parse_and_schedule("dentist wed, call mom", [make_task()])

        assert [t["title"] for t in parsed.scheduled_tasks] == ["Dentist"]
        assert [t["title"] for t in parsed.unscheduled_tasks] == ["Call mom"]
        assert [s["title"] for s in parsed.suggestions] == ["Soup"]

    def test_prompt_contains_text_and_context_without_ids(self, make_task):
        fake = _fake_openai('{"schedule": [], "suggestions": []}')

        _client(fake).parse_and_schedule("buy milk", [make_task(id="secret-id", title="Standup")])

        kwargs = fake.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        prompt = kwargs["messages"][1]["content"]
        assert "buy milk" in prompt
        assert "Standup" in prompt
        assert "secret-id" not in prompt
        assert "2024-07-01T08:00:00+00:00" in prompt

    def test_malformed_json(self):
        fake = _fake_openai("Sure! Here is your schedule")
        with pytest.raises(AssistantResponseError):
            _client(fake).parse_and_schedule("x", [])

    def test_non_object_response(self):
        fake = _fake_openai("[]")
        with pytest.raises(AssistantResponseError):
            _client(fake).parse_and_schedule("x", [])

    def test_api_error(self):
        fake = MagicMock()
        fake.chat.completions.create.side_effect = APIError(
            "quota", httpx.Request("POST", "https://api.openai.com/v1/chat/completions"), body=None
        )
        with pytest.raises(AssistantResponseError):
            _client(fake).parse_and_schedule("x", [])


class TestRebalance:
    """rebalance() returns the model's raw task list."""

    def test_returns_list_with_ids(self, make_task):
        fake = _fake_openai('[{"id": "t1", "startTime": "2024-07-02T09:00:00Z"}]')
        result = _client(fake).rebalance([make_task()])
        assert result == [{"id": "t1", "startTime": "2024-07-02T09:00:00Z"}]
        prompt = fake.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert '"id": "t1"' in prompt

    def test_unwraps_tasks_object(self, make_task):
        fake = _fake_openai('{"tasks": [{"id": "t1", "startTime": "2024-07-02T09:00:00Z"}]}')
        assert _client(fake).rebalance([make_task()])[0]["id"] == "t1"


class TestSearch:
    """search() sends the calendar data and unwraps the results list."""

    def test_unwraps_results(self, make_task):
        document = BackupDocument(tasks=[make_task()], unscheduled_tasks=[], suggestions=[], completed_occurrences={})
        fake = _fake_openai('{"results": [{"id": "t1"}]}')

        result = _client(fake).search("meetings last week", document)

        assert result == [{"id": "t1"}]
        prompt = fake.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "meetings last week" in prompt
        assert '"unscheduledTasks": []' in prompt
        assert '"id": "t1"' in prompt

    def test_missing_results_is_empty(self):
        document = BackupDocument(tasks=[], unscheduled_tasks=[], suggestions=[], completed_occurrences={})
        assert _client(_fake_openai("{}")).search("x", document) == []

    def test_scalar_response(self):
        document = BackupDocument(tasks=[], unscheduled_tasks=[], suggestions=[], completed_occurrences={})
        with pytest.raises(AssistantResponseError):
            _client(_fake_openai('"nothing"')).search("x", document)


class TestUnavailable:
    """Without an API key every call raises AssistantUnavailableError."""

    def test_no_key(self, monkeypatch):
        from balanceflow import config

        monkeypatch.setattr(config.get_settings(), "openai_api_key", None)
        client = OpenAIScheduleClient(api_key=None)

        assert client.available is False
        with pytest.raises(AssistantUnavailableError):
            client.parse_and_schedule("x", [])
        with pytest.raises(AssistantUnavailableError):
            client.rebalance([])
        with pytest.raises(AssistantUnavailableError):
            client.search("x", BackupDocument(tasks=[], unscheduled_tasks=[], suggestions=[], completed_occurrences={}))
