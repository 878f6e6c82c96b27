from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from trackcore import config
from trackcore.app.db.models import EntryKind, TaskNode, TimelineEntry, task_entry_id
from trackcore.engine.dependency_graph import DependencyGraph, id_sort_key

_EPS = 1e-9


class TaskSchedule(BaseModel):
    id: str
    duration: float
    ES: float
    EF: float
    LS: float
    LF: float
    slack: float
    isCritical: bool


class CriticalPathResult(BaseModel):
    project_duration: float = 0.0
    tasks: List[TaskSchedule] = []
    critical_path: List[str] = []
    critical_dependencies: List[Tuple[str, str]] = []

    def schedule_for(self, task_id: str) -> Optional[TaskSchedule]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def is_critical(self, task_id: str) -> bool:
        return task_id in set(self.critical_path)

    def annotate(self, entries: Iterable[TimelineEntry]) -> List[TimelineEntry]:
        """Return copies of the entries with on_critical_path set for critical tasks."""
        critical = {task_entry_id(u) for u in self.critical_path}
        out: List[TimelineEntry] = []
        for e in entries:
            flag = e.kind == EntryKind.TASK and e.id in critical
            out.append(e if e.on_critical_path == flag else e.model_copy(update={"on_critical_path": flag}))
        return out


def _duration(task: TaskNode) -> float:
    if task.estimated_days is None:
        return config.DEFAULT_TASK_DURATION_DAYS
    return max(0.0, float(task.estimated_days))


def run_cpa(tasks: Iterable[TaskNode], graph: DependencyGraph) -> CriticalPathResult:
    """Critical path over the given tasks, using only the edges between them.

    Forward pass gives each task the longest cumulative duration ending at it
    (EF); backward pass from the sinks gives LF/LS. Tasks with zero slack lie on
    a maximum-length source-to-sink chain. Nothing is cached.
    """
    task_list = list(tasks)
    dur: Dict[str, float] = {t.id: _duration(t) for t in task_list}
    in_graph = [u for u in dur if u in graph]
    loose = sorted((u for u in dur if u not in graph), key=id_sort_key)
    order = graph.topological_order(in_graph) + loose

    members = set(dur)
    preds: Dict[str, List[str]] = {u: [] for u in order}
    succ: Dict[str, List[str]] = {u: [] for u in order}
    for u in in_graph:
        for p in graph.pre_dependencies_of(u):
            if p in members:
                preds[u].append(p)
                succ[p].append(u)

    # Forward pass: ES/EF
    ES: Dict[str, float] = {u: 0.0 for u in order}
    EF: Dict[str, float] = {u: dur[u] for u in order}
    for u in order:
        if preds[u]:
            ES[u] = max(EF[p] for p in preds[u])
        EF[u] = ES[u] + dur[u]
    project_duration = max((EF[u] for u in order), default=0.0)

    # Backward pass: LS/LF
    LF: Dict[str, float] = {u: project_duration for u in order}
    LS: Dict[str, float] = {u: project_duration - dur[u] for u in order}
    for u in reversed(order):
        if succ[u]:
            LF[u] = min(LS[v] for v in succ[u])
            LS[u] = LF[u] - dur[u]
    slack: Dict[str, float] = {u: max(0.0, LS[u] - ES[u]) for u in order}

    crit_set = {u for u in order if abs(slack[u]) < _EPS}
    critical_deps = [
        (p, u)
        for u in order if u in crit_set
        for p in sorted(preds[u], key=id_sort_key)
        if p in crit_set and abs(EF[p] - ES[u]) < _EPS
    ]
    return CriticalPathResult(
        project_duration=project_duration,
        tasks=[
            TaskSchedule(
                id=u,
                duration=dur[u],
                ES=ES[u],
                EF=EF[u],
                LS=LS[u],
                LF=LF[u],
                slack=slack[u],
                isCritical=u in crit_set,
            )
            for u in order
        ],
        critical_path=[u for u in order if u in crit_set],
        critical_dependencies=critical_deps,
    )


def get_task_slack(result: CriticalPathResult, task_id: str) -> Optional[float]:
    t = result.schedule_for(task_id)
    return t.slack if t else None
