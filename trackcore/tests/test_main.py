"""
Tests for the HTTP endpoints in main.py.
"""
from datetime import date

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from trackcore.app.db.db_loader import SqlMilestoneStore, SqlTaskStore
from trackcore.app.errors import RangeError, TaskNotFoundError
from trackcore.main import (
    DependencyRequest,
    ProgressRequest,
    add_task_dependency,
    app,
    get_milestone_store,
    get_task_store,
    update_task_progress,
)


class TestRoot:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "trackcore is running"}


class TestTimelineEndpoints:
    def test_timeline(self, client):
        response = client.get("/projects/P1/timeline", params={"start": "2024-01-01", "end": "2024-01-31"})
        assert response.status_code == 200
        data = response.json()
        assert data["critical_path"] == ["A", "B", "C"]
        assert [row["id"] for row in data["entries"]] == ["task_A", "task_D", "task_B", "task_C", "milestone_M1"]
        assert data["entries"][0]["critical"] is True

    def test_timeline_member_filter(self, client, task_store):
        task = task_store.get_task("C")
        task.assigned_member_ids = {"ana"}
        task_store.persist(task)
        response = client.get(
            "/projects/P1/timeline",
            params={"start": "2024-01-01", "end": "2024-01-31", "filter": "TEAM_MEMBER", "member_id": "ana"},
        )
        assert response.status_code == 200
        assert [row["id"] for row in response.json()["entries"]] == ["task_C", "milestone_M1"]

    def test_timeline_reversed_window(self, client):
        response = client.get("/projects/P1/timeline", params={"start": "2024-02-01", "end": "2024-01-01"})
        assert response.status_code == 422

    def test_timeline_bad_filter(self, client):
        response = client.get("/projects/P1/timeline", params={"filter": "BY_COLOUR"})
        assert response.status_code == 422

    def test_timeline_missing_criteria(self, client):
        response = client.get("/projects/P1/timeline", params={"filter": "SUBSYSTEM"})
        assert response.status_code == 422
        assert "subsystem_id" in response.json()["detail"]

    def test_critical_path(self, client):
        response = client.get("/projects/P1/critical-path")
        assert response.status_code == 200
        data = response.json()
        assert data["critical_path"] == ["A", "B", "C"]
        assert data["project_duration"] == 6.0
        assert {t["id"]: t["isCritical"] for t in data["tasks"]}["D"] is False

    def test_bottlenecks(self, client):
        response = client.get("/projects/P1/bottlenecks")
        assert response.status_code == 200
        assert response.json() == {"project_id": "P1", "bottlenecks": ["B"]}


class TestTaskEndpoints:
    def test_add_dependency(self, client, task_store):
        response = client.post("/tasks/D/dependencies", json={"prerequisite_id": "C"})
        assert response.status_code == 200
        assert response.json()["pre_dependencies"] == ["C"]
        assert task_store.get_task("C").post_dependencies == {"D"}

    def test_circular_dependency_conflict(self, client, task_store):
        response = client.post("/tasks/A/dependencies", json={"prerequisite_id": "C"})
        assert response.status_code == 409
        assert response.json()["detail"] == "Adding this dependency would create a circular dependency"
        assert task_store.get_task("A").pre_dependencies == set()

    def test_self_dependency_conflict(self, client):
        response = client.post("/tasks/A/dependencies", json={"prerequisite_id": "A"})
        assert response.status_code == 409
        assert response.json()["detail"] == "A task cannot depend on itself"

    def test_unknown_task(self, client):
        response = client.post("/tasks/Z/dependencies", json={"prerequisite_id": "A"})
        assert response.status_code == 404

    def test_remove_dependency(self, client):
        response = client.delete("/tasks/B/dependencies/A")
        assert response.status_code == 200
        assert response.json()["pre_dependencies"] == []

    def test_progress(self, client):
        response = client.put("/tasks/A/progress", json={"progress": 100})
        assert response.status_code == 200
        assert response.json()["completed"] is True

        response = client.put("/tasks/A/completed", json={"completed": False})
        assert response.status_code == 200
        assert (response.json()["progress"], response.json()["completed"]) == (100, False)

    def test_progress_out_of_range(self, client):
        response = client.put("/tasks/A/progress", json={"progress": 150})
        assert response.status_code == 422

    def test_progress_missing_body(self, client):
        response = client.put("/tasks/A/progress", json={})
        assert response.status_code == 422


def test_endpoints_against_sqlite(db_session, sample_tasks, sample_milestones):
    """The same flow over the SQL stores."""
    tasks = SqlTaskStore(db_session)
    milestones = SqlMilestoneStore(db_session)
    for t in sample_tasks:
        tasks.persist(t)
    for m in sample_milestones:
        milestones.persist(m)

    app.dependency_overrides[get_task_store] = lambda: tasks
    app.dependency_overrides[get_milestone_store] = lambda: milestones
    try:
        client = TestClient(app)
        response = client.post("/tasks/D/dependencies", json={"prerequisite_id": "A"})
        assert response.status_code == 200
        response = client.get("/projects/P1/timeline", params={"start": "2024-01-01", "end": "2024-01-31"})
        rows = {row["id"]: row for row in response.json()["entries"]}
        assert rows["task_D"]["dependencies"] == [
            {"source": "task_A", "target": "task_D", "type": "finish-to-start"}
        ]
        assert tasks.get_task("A").post_dependencies == {"B", "D"}
        assert date.fromisoformat(response.json()["start_date"]) == date(2024, 1, 1)
    finally:
        app.dependency_overrides.clear()


class TestErrorChaining:
    """HTTP errors keep the domain exception as their cause for logs and debuggers."""

    def test_not_found_keeps_cause(self, task_store):
        with pytest.raises(HTTPException) as exc:
            add_task_dependency("Z", DependencyRequest(prerequisite_id="A"), tasks=task_store)
        assert exc.value.status_code == 404
        assert isinstance(exc.value.__cause__, TaskNotFoundError)

    def test_range_error_keeps_cause(self, task_store):
        with pytest.raises(HTTPException) as exc:
            update_task_progress("A", ProgressRequest(progress=150), tasks=task_store)
        assert exc.value.status_code == 422
        assert isinstance(exc.value.__cause__, RangeError)
