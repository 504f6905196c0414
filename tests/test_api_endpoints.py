"""Integration tests for API endpoints.

These tests verify API endpoints work correctly end-to-end.
"""

from datetime import date

from balanceflow.database.repository import StateRepository
from balanceflow.engine.ingest import ParsedSchedule
from balanceflow.errors import AssistantResponseError, AssistantUnavailableError


def _create(test_client, **overrides):
    body = {
        "title": "Standup",
        "startTime": "2024-07-01T10:00:00Z",
        "duration": 30,
        "priority": "High",
        "recurrence": "weekly",
        "reminder": 10,
    }
    body.update(overrides)
    response = test_client.post("/tasks", json=body)
    assert response.status_code == 201
    return response.json()


class TestHealth:
    """Test GET /health."""

    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestTaskEndpoints:
    """Test task CRUD API endpoints."""

    def test_create_task(self, test_client, store, db_session):
        """Test POST /tasks endpoint."""
        data = _create(test_client)

        assert data["title"] == "Standup"
        assert data["recurrence"] == "weekly"
        assert data["id"]
        assert [t.id for t in store.scheduled_tasks] == [data["id"]]
        # Persisted after the mutation
        assert [t.id for t in StateRepository(db_session).load().tasks] == [data["id"]]

    def test_create_unscheduled_task(self, test_client, store):
        data = _create(test_client, startTime=None, recurrence="none")
        assert [t.id for t in store.unscheduled_tasks] == [data["id"]]

    def test_create_requires_title(self, test_client):
        response = test_client.post("/tasks", json={"title": ""})
        assert response.status_code == 422

    def test_update_task(self, test_client):
        task = _create(test_client)
        response = test_client.put(f"/tasks/{task['id']}", json={"title": "Daily sync", "duration": 15})
        assert response.status_code == 200
        assert response.json()["title"] == "Daily sync"
        assert response.json()["duration"] == 15

    def test_update_via_instance_id_keeps_anchor(self, test_client):
        task = _create(test_client)
        response = test_client.put(
            f"/tasks/{task['id']}_2024-07-15",
            json={"startTime": "2024-07-15T14:00:00Z"},
        )
        assert response.status_code == 200
        assert response.json()["id"] == task["id"]
        assert response.json()["startTime"].startswith("2024-07-01T14:00:00")

    def test_update_via_master_id_moves_anchor(self, test_client, store):
        task = _create(test_client)
        response = test_client.put(f"/tasks/{task['id']}", json={"startTime": "2024-07-03T10:00:00Z"})
        assert response.status_code == 200
        assert response.json()["startTime"].startswith("2024-07-03T10:00:00")
        assert store.occurrences_on(date(2024, 7, 8)) == []
        assert len(store.occurrences_on(date(2024, 7, 10))) == 1

    def test_update_via_stale_instance_id(self, test_client, store):
        task = _create(test_client)
        response = test_client.put(f"/tasks/{task['id']}_2024-07-09", json={"title": "Changed"})
        assert response.status_code == 404
        assert store.get_master(task["id"]).title == "Standup"

    def test_delete_via_stale_instance_id(self, test_client, store):
        task = _create(test_client)
        assert test_client.delete(f"/tasks/{task['id']}_2024-07-09").status_code == 404
        assert [t.id for t in store.scheduled_tasks] == [task["id"]]

    def test_undo_keeps_completed_occurrences(self, test_client, store):
        task = _create(test_client)
        test_client.post(f"/occurrences/{task['id']}_2024-07-08/toggle")

        test_client.delete(f"/tasks/{task['id']}")
        test_client.post("/tasks/undo")

        assert store.ledger.to_dict() == {task["id"]: ["2024-07-08"]}

    def test_update_unknown_task(self, test_client):
        response = test_client.put("/tasks/missing", json={"title": "x"})
        assert response.status_code == 404

    def test_delete_and_undo(self, test_client, store):
        task = _create(test_client)

        response = test_client.delete(f"/tasks/{task['id']}")
        assert response.status_code == 200
        assert store.scheduled_tasks == []

        response = test_client.post("/tasks/undo")
        assert response.status_code == 200
        assert response.json()["id"] == task["id"]
        assert [t.id for t in store.scheduled_tasks] == [task["id"]]

    def test_undo_with_nothing_pending(self, test_client):
        assert test_client.post("/tasks/undo").status_code == 404

    def test_delete_unknown_task(self, test_client):
        assert test_client.delete("/tasks/missing").status_code == 404

    def test_schedule_unscheduled_task(self, test_client, store):
        task = _create(test_client, startTime=None, recurrence="none")
        response = test_client.post(f"/tasks/{task['id']}/schedule", json={"startTime": "2024-07-02T09:00:00Z"})
        assert response.status_code == 200
        assert store.unscheduled_tasks == []
        assert [t.id for t in store.scheduled_tasks] == [task["id"]]


class TestOccurrenceEndpoints:
    """Test occurrence lookup and completion toggling."""

    def test_toggle_occurrence(self, test_client, store):
        task = _create(test_client)
        instance_id = f"{task['id']}_2024-07-08"

        response = test_client.post(f"/occurrences/{instance_id}/toggle")
        assert response.status_code == 200
        assert response.json() == {"instance_id": instance_id, "completed": True}
        assert store.ledger.to_dict() == {task["id"]: ["2024-07-08"]}

        response = test_client.post(f"/occurrences/{instance_id}/toggle")
        assert response.json()["completed"] is False
        assert store.ledger.to_dict() == {}

    def test_get_occurrence(self, test_client):
        task = _create(test_client)
        response = test_client.get(f"/occurrences/{task['id']}_2024-07-08")
        assert response.status_code == 200
        body = response.json()
        assert body["instanceId"] == f"{task['id']}_2024-07-08"
        assert body["occurrenceDate"] == "2024-07-08"
        assert body["startTime"].startswith("2024-07-08T10:00:00")

    def test_unresolvable_instance_id(self, test_client):
        task = _create(test_client)
        assert test_client.get(f"/occurrences/{task['id']}_2024-07-09").status_code == 404
        assert test_client.post(f"/occurrences/{task['id']}_2024-07-09/toggle").status_code == 404


class TestDayEndpoints:
    """Test day view and briefing."""

    def test_day_view(self, test_client):
        _create(test_client, duration=240)
        response = test_client.get("/days/2024-07-08")
        assert response.status_code == 200
        body = response.json()
        assert len(body["occurrences"]) == 1
        assert body["load_factor"] == 0.5
        # 09:00-10:00 is idle
        assert len(body["fillers"]) == 3

    def test_briefing(self, test_client):
        _create(test_client, title="Low one", priority="Low", recurrence="none", startTime="2024-07-08T08:00:00Z")
        _create(test_client, title="Standup")
        response = test_client.get("/briefing", params={"day": "2024-07-08"})
        assert response.status_code == 200
        assert [t["title"] for t in response.json()["top_tasks"]] == ["Standup", "Low one"]


class TestAssistantEndpoints:
    """Test capture and rebalance with a fake assistant."""

    def test_capture(self, test_client, store, fake_assistant):
        fake_assistant.parsed = ParsedSchedule(
            scheduled_tasks=[{"title": "Dentist", "startTime": "2024-07-03T14:00:00Z"}],
            unscheduled_tasks=[{"title": ""}],
        )
        response = test_client.post("/capture", json={"text": "dentist wednesday 2pm"})
        assert response.status_code == 200
        body = response.json()
        assert [t["title"] for t in body["added"]] == ["Dentist"]
        assert body["rejected_count"] == 1
        assert [t.title for t in store.scheduled_tasks] == ["Dentist"]

    def test_capture_assistant_failure(self, test_client, fake_assistant):
        fake_assistant.error = AssistantResponseError("bad response")
        assert test_client.post("/capture", json={"text": "x"}).status_code == 502

    def test_capture_assistant_unavailable(self, test_client, fake_assistant):
        fake_assistant.error = AssistantUnavailableError("no key")
        assert test_client.post("/capture", json={"text": "x"}).status_code == 503

    def test_rebalance_rejected(self, test_client, store, fake_assistant):
        task = _create(test_client, recurrence="none")
        fake_assistant.rebalanced = []
        response = test_client.post("/rebalance")
        assert response.status_code == 200
        assert response.json()["accepted"] is False
        assert [t.id for t in store.scheduled_tasks] == [task["id"]]

    def test_rebalance_accepted(self, test_client, store, fake_assistant):
        task = _create(test_client, recurrence="none")
        fake_assistant.rebalanced = [{"id": task["id"], "startTime": "2024-07-02T11:00:00Z"}]
        response = test_client.post("/rebalance")
        assert response.json()["accepted"] is True
        assert store.get_master(task["id"]).start_time.day == 2


class TestSearchEndpoint:
    """Test POST /search with a fake assistant."""

    def test_search(self, test_client, fake_assistant):
        task = _create(test_client)
        _create(test_client, title=".Private")
        fake_assistant.search_results = [{"id": task["id"]}, {"id": "made-up"}]

        response = test_client.post("/search", json={"query": "standups"})

        assert response.status_code == 200
        assert [t["id"] for t in response.json()["tasks"]] == [task["id"]]
        assert response.json()["suggestions"] == []
        _, document = fake_assistant.search_calls[0]
        assert [t.title for t in document.tasks] == ["Standup"]

    def test_search_requires_query(self, test_client):
        assert test_client.post("/search", json={"query": ""}).status_code == 422

    def test_search_assistant_unavailable(self, test_client, fake_assistant):
        fake_assistant.error = AssistantUnavailableError("no key")
        assert test_client.post("/search", json={"query": "x"}).status_code == 503


class TestNotificationEndpoints:
    """Test notification draining and commands."""

    def test_drain_notifications(self, test_client, store, scheduler, clock):
        from datetime import datetime, timezone

        _create(test_client)
        scheduler.tick(datetime(2024, 7, 8, 9, 55, tzinfo=timezone.utc))

        response = test_client.get("/notifications")
        assert response.status_code == 200
        assert [n["kind"] for n in response.json()] == ["reminder"]
        assert test_client.get("/notifications").json() == []

    def test_complete_command(self, test_client, store):
        task = _create(test_client)
        response = test_client.post(
            "/notifications/commands",
            json={"type": "complete", "taskId": f"{task['id']}_2024-07-08"},
        )
        assert response.status_code == 200
        assert response.json()["handled"] is True
        assert store.ledger.to_dict() == {task["id"]: ["2024-07-08"]}

    def test_unknown_id_command(self, test_client):
        response = test_client.post("/notifications/commands", json={"type": "focus", "taskId": "missing"})
        assert response.status_code == 200
        assert response.json()["handled"] is False


class TestBackupEndpoints:
    """Test backup export and restore."""

    def test_backup_and_restore(self, test_client, store):
        task = _create(test_client)
        backup = test_client.get("/backup").json()
        assert set(backup) == {"tasks", "unscheduledTasks", "suggestions", "completedOccurrences"}

        test_client.delete(f"/tasks/{task['id']}")
        response = test_client.post("/restore", json=backup)

        assert response.status_code == 200
        assert [t.id for t in store.scheduled_tasks] == [task["id"]]

    def test_invalid_restore_leaves_state(self, test_client, store):
        task = _create(test_client)
        response = test_client.post("/restore", json={"tasks": []})
        assert response.status_code == 400
        assert "Invalid backup file format" in response.json()["detail"]
        assert [t.id for t in store.scheduled_tasks] == [task["id"]]
