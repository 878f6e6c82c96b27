"""
Test configuration and fixtures for the trackcore test suite.
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from trackcore.app.db.database import init_schema
from trackcore.app.db.db_loader import SqlMilestoneStore, SqlTaskStore
from trackcore.app.db.models import Milestone, TaskNode
from trackcore.app.db.stores import InMemoryMilestoneStore, InMemoryTaskStore
from trackcore.main import app, get_milestone_store, get_task_store


def make_task(task_id, start=None, end=None, estimate=2.0, project_id="P1", **kwargs):
    """Build a TaskNode with sensible defaults for tests."""
    return TaskNode(
        id=task_id,
        title=kwargs.pop("title", f"Task {task_id}"),
        estimated_days=estimate,
        start_date=start,
        end_date=end,
        project_id=project_id,
        **kwargs,
    )


@pytest.fixture
def sample_tasks():
    """A -> B -> C chain plus a disconnected D, all in January 2024."""
    return [
        make_task("A", date(2024, 1, 1), date(2024, 1, 3)),
        make_task("B", date(2024, 1, 3), date(2024, 1, 5), pre_dependencies={"A"}),
        make_task("C", date(2024, 1, 5), date(2024, 1, 7), pre_dependencies={"B"}),
        make_task("D", date(2024, 1, 2), date(2024, 1, 3), estimate=1.0),
    ]


@pytest.fixture
def sample_milestones():
    return [
        Milestone(id="M1", name="Kickoff", date=date(2024, 1, 1), project_id="P1"),
        Milestone(id="M2", name="Ship", date=date(2024, 3, 1), project_id="P1"),
    ]


@pytest.fixture
def task_store(sample_tasks):
    return InMemoryTaskStore(sample_tasks)


@pytest.fixture
def milestone_store(sample_milestones):
    return InMemoryMilestoneStore(sample_milestones)


@pytest.fixture
def db_session(tmp_path):
    """A SQLAlchemy session on a fresh SQLite file with the schema created."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", echo=False, connect_args={"check_same_thread": False}
    )
    init_schema(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def sql_task_store(db_session):
    return SqlTaskStore(db_session)


@pytest.fixture
def sql_milestone_store(db_session):
    return SqlMilestoneStore(db_session)


@pytest.fixture
def client(task_store, milestone_store):
    """Test client whose store dependencies point at the in-memory fixtures."""
    app.dependency_overrides[get_task_store] = lambda: task_store
    app.dependency_overrides[get_milestone_store] = lambda: milestone_store
    yield TestClient(app)
    app.dependency_overrides.clear()
