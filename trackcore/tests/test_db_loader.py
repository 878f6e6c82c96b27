"""
Tests for the SQL and in-memory stores (app/db/db_loader.py, app/db/stores.py).
"""
from datetime import date

import pytest
from sqlalchemy import text

from trackcore.app.db.models import Milestone, Priority
from trackcore.app.db.stores import InMemoryTaskStore
from trackcore.app.errors import TaskNotFoundError
from trackcore.engine.dependency_graph import DependencyGraph

from conftest import make_task


class TestSqlTaskStore:
    def test_round_trip_with_members_and_dependencies(self, sql_task_store, sample_tasks):
        for t in sample_tasks:
            sql_task_store.persist(t)
        sql_task_store.persist(make_task("X", date(2024, 1, 1), project_id="P2"))

        loaded = {t.id: t for t in sql_task_store.list_tasks_for_project("P1")}
        assert set(loaded) == {"A", "B", "C", "D"}
        assert loaded["B"].pre_dependencies == {"A"}
        assert loaded["B"].post_dependencies == {"C"}
        assert loaded["A"].start_date == date(2024, 1, 1)
        assert loaded["A"].priority == Priority.MEDIUM

        graph = DependencyGraph.from_tasks(loaded.values(), "P1")
        assert graph.edges() == [("A", "B"), ("B", "C")]

    def test_persist_replaces_rows(self, sql_task_store, db_session):
        task = make_task("T1", date(2024, 1, 1), assigned_member_ids={"ana", "ben"})
        sql_task_store.persist(task)
        task.assigned_member_ids = {"ben"}
        task.title = "Renamed"
        sql_task_store.persist(task)

        got = sql_task_store.get_task("T1")
        assert got.title == "Renamed"
        assert got.assigned_member_ids == {"ben"}
        count = db_session.execute(text("SELECT COUNT(*) FROM tasks")).scalar()
        assert count == 1

    def test_blank_id_gets_generated(self, sql_task_store):
        saved = sql_task_store.persist(make_task("", date(2024, 1, 1)))
        assert saved.id
        assert sql_task_store.get_task(saved.id).title == "Task "

    def test_completed_row_is_normalized_on_load(self, sql_task_store, db_session):
        db_session.execute(text("""
            INSERT INTO tasks (id, project_id, title, progress, completed)
            VALUES ('S1', 'P1', 'stale', 40, 1)
        """))
        db_session.commit()
        task = sql_task_store.get_task("S1")
        assert task.completed is True
        assert task.progress == 100

    def test_missing_task(self, sql_task_store):
        with pytest.raises(TaskNotFoundError):
            sql_task_store.get_task("nope")


class TestSqlMilestoneStore:
    def test_persist_and_list(self, sql_milestone_store, sample_milestones):
        for m in sample_milestones:
            sql_milestone_store.persist(m)
        sql_milestone_store.persist(Milestone(id="M1", name="Kickoff (moved)", date=date(2024, 1, 2), project_id="P1"))

        by_id = {m.id: m for m in sql_milestone_store.list_milestones_for_project("P1")}
        assert set(by_id) == {"M1", "M2"}
        assert by_id["M1"].name == "Kickoff (moved)"
        assert by_id["M1"].date == date(2024, 1, 2)
        assert sql_milestone_store.list_milestones_for_project("P2") == []


class TestInMemoryTaskStore:
    def test_returns_copies(self, task_store):
        task = task_store.get_task("A")
        task.title = "changed"
        assert task_store.get_task("A").title == "Task A"

    def test_assigns_ids(self):
        store = InMemoryTaskStore()
        first = store.persist(make_task(""))
        second = store.persist(make_task(""))
        assert (first.id, second.id) == ("1", "2")

    def test_missing_task(self, task_store):
        with pytest.raises(TaskNotFoundError):
            task_store.get_task("Z")
