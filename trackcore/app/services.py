"""Store-backed operations used by the HTTP layer and the timeline view.

Each call rehydrates the project's DependencyGraph from the TaskStore, works on
it under that project's lock and writes changed task records back. Nothing is
cached between calls.
"""
import logging
import threading
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from trackcore.app.db.models import TaskNode, TimelineEntry
from trackcore.app.db.stores import MilestoneStore, TaskStore
from trackcore.app.errors import TaskNotFoundError
from trackcore.engine.cpa import CriticalPathResult, run_cpa
from trackcore.engine.dependency_graph import DependencyGraph
from trackcore.engine.filters import FilterOption, apply_filter
from trackcore.engine.progress import set_completed, set_progress
from trackcore.engine.timeline import build_timeline
from trackcore.engine.zoom import ZoomController

logger = logging.getLogger(__name__)


class ProjectLocks:
    """One lock per project id. Graph mutations and timeline builds for the
    same project never interleave."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def for_project(self, project_id: Optional[str]) -> threading.Lock:
        key = str(project_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


project_locks = ProjectLocks()


class DependencyService:
    def __init__(self, task_store: TaskStore, locks: Optional[ProjectLocks] = None):
        self.task_store = task_store
        self.locks = locks or project_locks

    def graph_for(self, project_id: str) -> DependencyGraph:
        return DependencyGraph.from_tasks(self.task_store.list_tasks_for_project(project_id), project_id)

    def _pair(self, task_id: str, prerequisite_id: str):
        dependent = self.task_store.get_task(task_id)
        prerequisite = self.task_store.get_task(prerequisite_id)
        if prerequisite.project_id != dependent.project_id:
            # Edges never cross projects
            raise TaskNotFoundError(prerequisite_id)
        return dependent, prerequisite

    def _write_back(self, graph: DependencyGraph, *tasks: TaskNode) -> List[TaskNode]:
        return [self.task_store.persist(graph.sync_task(t)) for t in tasks]

    def _edit_edge(self, task_id: str, prerequisite_id: str, edit) -> TaskNode:
        project_id = self.task_store.get_task(task_id).project_id
        with self.locks.for_project(project_id):
            # Records written back must be read under the lock
            dependent, prerequisite = self._pair(task_id, prerequisite_id)
            graph = self.graph_for(project_id)
            edit(graph, dependent.id, prerequisite.id)
            saved, _ = self._write_back(graph, dependent, prerequisite)
        return saved

    def add_dependency(self, task_id: str, prerequisite_id: str) -> TaskNode:
        """Make task_id wait for prerequisite_id and persist both records.
        Returns the updated dependent task."""
        return self._edit_edge(task_id, prerequisite_id, DependencyGraph.add_dependency)

    def remove_dependency(self, task_id: str, prerequisite_id: str) -> TaskNode:
        return self._edit_edge(task_id, prerequisite_id, DependencyGraph.remove_dependency)

    def blocking_prerequisites(self, task_id: str) -> List[str]:
        """Direct prerequisites of task_id that still have to be completed."""
        task = self.task_store.get_task(task_id)
        tasks = self.task_store.list_tasks_for_project(task.project_id)
        graph = DependencyGraph.from_tasks(tasks, task.project_id)
        return graph.blocking_prerequisites(task.id, [t.id for t in tasks if t.completed])


class ProgressService:
    """Progress writes share the project lock with dependency edits: both
    persist the whole task record, dependency sets included."""

    def __init__(self, task_store: TaskStore, locks: Optional[ProjectLocks] = None):
        self.task_store = task_store
        self.locks = locks or project_locks

    def _update(self, task_id: str, change) -> TaskNode:
        project_id = self.task_store.get_task(task_id).project_id
        with self.locks.for_project(project_id):
            task = self.task_store.get_task(task_id)
            change(task)
            return self.task_store.persist(task)

    def update_progress(self, task_id: str, value: int) -> TaskNode:
        saved = self._update(task_id, lambda t: set_progress(t, value))
        logger.info("Task %s progress set to %s (completed=%s)", saved.id, saved.progress, saved.completed)
        return saved

    def mark_completed(self, task_id: str, completed: bool) -> TaskNode:
        saved = self._update(task_id, lambda t: set_completed(t, completed))
        logger.info("Task %s completed=%s (progress=%s)", saved.id, saved.completed, saved.progress)
        return saved


class TimelineResult(BaseModel):
    project_id: str
    start_date: date
    end_date: date
    entries: List[TimelineEntry] = []
    critical_path: List[str] = []
    project_duration: float = 0.0


class TimelineService:
    def __init__(self, task_store: TaskStore, milestone_store: Optional[MilestoneStore] = None,
                 locks: Optional[ProjectLocks] = None):
        self.task_store = task_store
        self.milestone_store = milestone_store
        self.locks = locks or project_locks

    def timeline(
        self,
        project_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        filter_option: Union[FilterOption, str, None] = FilterOption.ALL,
        criteria: Optional[Mapping[str, Any]] = None,
    ) -> TimelineResult:
        """Entries for the window, annotated with the critical path and filtered.
        A missing bound falls back to the default chart window around today."""
        if start_date is None or end_date is None:
            default_start, default_end = ZoomController.default_window().window
            start_date = start_date or default_start
            end_date = end_date or default_end
        with self.locks.for_project(project_id):
            tasks = self.task_store.list_tasks_for_project(project_id)
            milestones = self.milestone_store.list_milestones_for_project(project_id) if self.milestone_store else []
            graph = DependencyGraph.from_tasks(tasks, project_id)
            entries = build_timeline(project_id, start_date, end_date, tasks, milestones, graph)
            cpa = run_cpa(tasks, graph)
        entries = apply_filter(cpa.annotate(entries), filter_option, criteria)
        logger.debug("Timeline for project %s [%s, %s]: %s entries", project_id, start_date, end_date, len(entries))
        return TimelineResult(
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
            entries=entries,
            critical_path=cpa.critical_path,
            project_duration=cpa.project_duration,
        )

    def critical_path(self, project_id: str) -> CriticalPathResult:
        with self.locks.for_project(project_id):
            tasks = self.task_store.list_tasks_for_project(project_id)
            return run_cpa(tasks, DependencyGraph.from_tasks(tasks, project_id))

    def bottlenecks(self, project_id: str) -> List[str]:
        with self.locks.for_project(project_id):
            tasks = self.task_store.list_tasks_for_project(project_id)
            return DependencyGraph.from_tasks(tasks, project_id).find_bottlenecks()
