from contextlib import asynccontextmanager
from datetime import date
import logging

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.orm import Session

from trackcore import config
from trackcore.app.db.database import get_db, init_schema
from trackcore.app.db.db_loader import SqlMilestoneStore, SqlTaskStore
from trackcore.app.db.models import TaskNode
from trackcore.app.db.stores import MilestoneStore, TaskStore
from trackcore.app.errors import (
    CircularDependencyError,
    InvalidRangeError,
    MissingFilterCriteriaError,
    RangeError,
    SelfDependencyError,
    TaskNotFoundError,
    TrackCoreError,
    UnsupportedFilterError,
    ValidationError,
)
from trackcore.app.services import DependencyService, ProgressService, TimelineService
from trackcore.engine.filters import filter_criteria
from trackcore.engine.timeline import to_chart_data

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_schema()
    yield


app = FastAPI(title="trackcore", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class DependencyRequest(BaseModel):
    prerequisite_id: str


class ProgressRequest(BaseModel):
    progress: int


class CompletedRequest(BaseModel):
    completed: bool


def get_task_store(db: Session = Depends(get_db)) -> TaskStore:
    return SqlTaskStore(db)


def get_milestone_store(db: Session = Depends(get_db)) -> MilestoneStore:
    return SqlMilestoneStore(db)


_STATUS_FOR_ERROR = [
    (TaskNotFoundError, 404),
    (SelfDependencyError, 409),
    (CircularDependencyError, 409),
    (RangeError, 422),
    (InvalidRangeError, 422),
    (UnsupportedFilterError, 422),
    (MissingFilterCriteriaError, 422),
    (ValidationError, 422),
]


def _http_error(e: TrackCoreError) -> HTTPException:
    for exc_type, code in _STATUS_FOR_ERROR:
        if isinstance(e, exc_type):
            return HTTPException(status_code=code, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _task_out(task: TaskNode) -> dict:
    out = task.model_dump(mode="json")
    # Sets have no order; keep responses stable
    for key in ("assigned_member_ids", "pre_dependencies", "post_dependencies"):
        out[key] = sorted(out[key])
    return out


@app.get("/")
def root():
    return {"message": "trackcore is running"}


@app.get("/projects/{project_id}/timeline")
def project_timeline(
    project_id: str,
    start: date | None = Query(None, description="Window start (ISO date); defaults to a week ago"),
    end: date | None = Query(None, description="Window end (ISO date); defaults to a month ahead"),
    filter: str = Query("ALL", description="ALL, CRITICAL_PATH, SUBSYSTEM, TEAM_MEMBER, OVERDUE, COMPLETED or BEHIND_SCHEDULE"),
    subsystem_id: str | None = Query(None),
    member_id: str | None = Query(None),
    tasks: TaskStore = Depends(get_task_store),
    milestones: MilestoneStore = Depends(get_milestone_store),
):
    try:
        result = TimelineService(tasks, milestones).timeline(
            project_id, start, end, filter, filter_criteria(subsystem_id, member_id)
        )
        return {
            "project_id": result.project_id,
            "start_date": result.start_date.isoformat(),
            "end_date": result.end_date.isoformat(),
            "entries": to_chart_data(result.entries),
            "critical_path": result.critical_path,
            "project_duration": result.project_duration,
        }
    except TrackCoreError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.exception("/projects/%s/timeline failed: %s", project_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/projects/{project_id}/critical-path")
def project_critical_path(project_id: str, tasks: TaskStore = Depends(get_task_store)):
    try:
        result = TimelineService(tasks).critical_path(project_id)
        return {"project_id": project_id, **result.model_dump()}
    except TrackCoreError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.exception("/projects/%s/critical-path failed: %s", project_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/projects/{project_id}/bottlenecks")
def project_bottlenecks(project_id: str, tasks: TaskStore = Depends(get_task_store)):
    try:
        return {"project_id": project_id, "bottlenecks": TimelineService(tasks).bottlenecks(project_id)}
    except TrackCoreError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.exception("/projects/%s/bottlenecks failed: %s", project_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/tasks/{task_id}/dependencies")
def add_task_dependency(task_id: str, request: DependencyRequest, tasks: TaskStore = Depends(get_task_store)):
    try:
        return _task_out(DependencyService(tasks).add_dependency(task_id, request.prerequisite_id))
    except TrackCoreError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.exception("/tasks/%s/dependencies failed: %s", task_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.delete("/tasks/{task_id}/dependencies/{prerequisite_id}")
def remove_task_dependency(task_id: str, prerequisite_id: str, tasks: TaskStore = Depends(get_task_store)):
    try:
        return _task_out(DependencyService(tasks).remove_dependency(task_id, prerequisite_id))
    except TrackCoreError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.exception("/tasks/%s/dependencies/%s failed: %s", task_id, prerequisite_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.put("/tasks/{task_id}/progress")
def update_task_progress(task_id: str, request: ProgressRequest, tasks: TaskStore = Depends(get_task_store)):
    try:
        return _task_out(ProgressService(tasks).update_progress(task_id, request.progress))
    except TrackCoreError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.exception("/tasks/%s/progress failed: %s", task_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.put("/tasks/{task_id}/completed")
def update_task_completed(task_id: str, request: CompletedRequest, tasks: TaskStore = Depends(get_task_store)):
    try:
        return _task_out(ProgressService(tasks).mark_completed(task_id, request.completed))
    except TrackCoreError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.exception("/tasks/%s/completed failed: %s", task_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e
