import itertools
from typing import Dict, Iterable, List, Optional, Protocol

from trackcore.app.db.models import Milestone, TaskNode
from trackcore.app.errors import TaskNotFoundError
from trackcore.engine.progress import normalize


class TaskStore(Protocol):
    def list_tasks_for_project(self, project_id: str) -> List[TaskNode]: ...

    def get_task(self, task_id: str) -> TaskNode: ...

    def persist(self, task: TaskNode) -> TaskNode: ...


class MilestoneStore(Protocol):
    def list_milestones_for_project(self, project_id: str) -> List[Milestone]: ...

    def persist(self, milestone: Milestone) -> Milestone: ...


class InMemoryTaskStore:
    """Dict-backed TaskStore. Records are copied in and out so callers never
    hold live references into the store."""

    def __init__(self, tasks: Optional[Iterable[TaskNode]] = None):
        self._tasks: Dict[str, TaskNode] = {}
        self._ids = itertools.count(1)
        for t in tasks or []:
            self.persist(t)

    def list_tasks_for_project(self, project_id: str) -> List[TaskNode]:
        return [t.model_copy(deep=True) for t in self._tasks.values() if t.project_id == str(project_id)]

    def get_task(self, task_id: str) -> TaskNode:
        t = self._tasks.get(str(task_id))
        if t is None:
            raise TaskNotFoundError(str(task_id))
        return t.model_copy(deep=True)

    def persist(self, task: TaskNode) -> TaskNode:
        stored = normalize(task.model_copy(deep=True))
        if not stored.id:
            stored.id = self._next_id()
        self._tasks[stored.id] = stored
        return stored.model_copy(deep=True)

    def _next_id(self) -> str:
        while True:
            candidate = str(next(self._ids))
            if candidate not in self._tasks:
                return candidate


class InMemoryMilestoneStore:
    def __init__(self, milestones: Optional[Iterable[Milestone]] = None):
        self._milestones: Dict[str, Milestone] = {m.id: m.model_copy() for m in milestones or []}

    def list_milestones_for_project(self, project_id: str) -> List[Milestone]:
        return [m.model_copy() for m in self._milestones.values() if m.project_id == str(project_id)]

    def persist(self, milestone: Milestone) -> Milestone:
        self._milestones[milestone.id] = milestone.model_copy()
        return milestone.model_copy()
