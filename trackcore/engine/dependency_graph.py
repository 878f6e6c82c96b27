import heapq
import logging
from collections import deque
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from trackcore.app.db.models import TaskNode
from trackcore.app.errors import CircularDependencyError, SelfDependencyError, TaskNotFoundError

logger = logging.getLogger(__name__)


def id_sort_key(task_id: str) -> Tuple[int, str]:
    """Deterministic ordering for task ids: numeric part first ('9' < '10',
    'PROJ-2' < 'PROJ-11'), then the id itself."""
    tail = task_id.rsplit('-', 1)[-1] if task_id else ""
    try:
        return (int(tail), task_id)
    except ValueError:
        return (0, task_id)


class DependencyUpdate(NamedTuple):
    dependent_id: str
    dependent_pre: Set[str]
    dependent_post: Set[str]
    prerequisite_id: str
    prerequisite_pre: Set[str]
    prerequisite_post: Set[str]


class DependencyGraph:
    """Prerequisite edges between task ids for a single project.

    An edge prerequisite -> dependent is stored twice: in the dependent's pre set
    and in the prerequisite's post set. Both halves are always written together
    and the relation stays acyclic.
    """

    def __init__(self, project_id: Optional[str] = None):
        self.project_id = project_id
        self._pre: Dict[str, Set[str]] = {}
        self._post: Dict[str, Set[str]] = {}

    @classmethod
    def from_tasks(cls, tasks: Iterable[TaskNode], project_id: Optional[str] = None) -> "DependencyGraph":
        """Rehydrate a graph from stored task records.

        Every stored pre-dependency goes through add_dependency(), so cyclic store
        data raises CircularDependencyError. References to tasks outside the given
        set are skipped.
        """
        tasks = list(tasks)
        graph = cls(project_id)
        for t in tasks:
            graph.add_task(t.id)
        for t in sorted(tasks, key=lambda x: id_sort_key(x.id)):
            for pre in sorted(t.pre_dependencies or (), key=id_sort_key):
                if pre not in graph:
                    logger.warning("Skipping dependency %s -> %s: prerequisite not in project %s",
                                   pre, t.id, project_id)
                    continue
                graph.add_dependency(t.id, pre)
        return graph

    # ------------------------------
    # Nodes
    # ------------------------------

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._pre

    def __len__(self) -> int:
        return len(self._pre)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyGraph):
            return NotImplemented
        return self._pre == other._pre and self._post == other._post

    def task_ids(self) -> List[str]:
        return sorted(self._pre, key=id_sort_key)

    def add_task(self, task_id: str) -> None:
        self._pre.setdefault(task_id, set())
        self._post.setdefault(task_id, set())

    def remove_task(self, task_id: str) -> None:
        """Drop a node together with every edge touching it."""
        self._require(task_id)
        for pre in list(self._pre[task_id]):
            self._post[pre].discard(task_id)
        for post in list(self._post[task_id]):
            self._pre[post].discard(task_id)
        del self._pre[task_id]
        del self._post[task_id]
        logger.info("Removed task %s from dependency graph", task_id)

    def _require(self, task_id: str) -> None:
        if task_id not in self._pre:
            raise TaskNotFoundError(task_id)

    # ------------------------------
    # Edges
    # ------------------------------

    def add_dependency(self, dependent_id: str, prerequisite_id: str) -> DependencyUpdate:
        """Make dependent_id wait for prerequisite_id."""
        if dependent_id == prerequisite_id:
            raise SelfDependencyError(dependent_id)
        self._require(dependent_id)
        self._require(prerequisite_id)
        if prerequisite_id in self._pre[dependent_id]:
            logger.debug("Dependency %s -> %s already present", prerequisite_id, dependent_id)
            return self._update(dependent_id, prerequisite_id)
        path = self._find_path(dependent_id, prerequisite_id)
        if path is not None:
            logger.warning("Rejected dependency %s -> %s: cycle through %s",
                           prerequisite_id, dependent_id, " -> ".join(path))
            raise CircularDependencyError(dependent_id, prerequisite_id, path)
        self._pre[dependent_id].add(prerequisite_id)
        self._post[prerequisite_id].add(dependent_id)
        logger.info("Added dependency %s -> %s", prerequisite_id, dependent_id)
        return self._update(dependent_id, prerequisite_id)

    def remove_dependency(self, dependent_id: str, prerequisite_id: str) -> DependencyUpdate:
        """Remove the edge if present; removing a missing edge is a no-op."""
        self._require(dependent_id)
        self._require(prerequisite_id)
        if prerequisite_id in self._pre[dependent_id]:
            self._pre[dependent_id].discard(prerequisite_id)
            self._post[prerequisite_id].discard(dependent_id)
            logger.info("Removed dependency %s -> %s", prerequisite_id, dependent_id)
        return self._update(dependent_id, prerequisite_id)

    def _update(self, dependent_id: str, prerequisite_id: str) -> DependencyUpdate:
        return DependencyUpdate(
            dependent_id=dependent_id,
            dependent_pre=set(self._pre[dependent_id]),
            dependent_post=set(self._post[dependent_id]),
            prerequisite_id=prerequisite_id,
            prerequisite_pre=set(self._pre[prerequisite_id]),
            prerequisite_post=set(self._post[prerequisite_id]),
        )

    def pre_dependencies_of(self, task_id: str) -> Set[str]:
        self._require(task_id)
        return set(self._pre[task_id])

    def post_dependencies_of(self, task_id: str) -> Set[str]:
        self._require(task_id)
        return set(self._post[task_id])

    def edges(self) -> List[Tuple[str, str]]:
        """All edges as (prerequisite, dependent), in id order."""
        out = [(pre, dep) for dep, pres in self._pre.items() for pre in pres]
        return sorted(out, key=lambda e: (id_sort_key(e[0]), id_sort_key(e[1])))

    def sync_task(self, task: TaskNode) -> TaskNode:
        """Write this graph's pre/post sets onto the task record."""
        self._require(task.id)
        task.pre_dependencies = set(self._pre[task.id])
        task.post_dependencies = set(self._post[task.id])
        return task

    # ------------------------------
    # Reachability
    # ------------------------------

    def _find_path(self, start: str, target: str) -> Optional[List[str]]:
        """Depth-first search from start along post edges. Returns the path to
        target or None. Each node is expanded at most once."""
        parents: Dict[str, Optional[str]] = {start: None}
        stack = [start]
        budget = len(self._pre)
        while stack and budget >= 0:
            budget -= 1
            u = stack.pop()
            if u == target:
                path = [u]
                while parents[path[-1]] is not None:
                    path.append(parents[path[-1]])
                return list(reversed(path))
            for v in sorted(self._post.get(u, ()), key=id_sort_key, reverse=True):
                if v not in parents:
                    parents[v] = u
                    stack.append(v)
        return None

    def would_create_cycle(self, dependent_id: str, prerequisite_id: str) -> bool:
        if dependent_id == prerequisite_id:
            return True
        return self._find_path(dependent_id, prerequisite_id) is not None

    def _closure(self, task_id: str, edges: Dict[str, Set[str]]) -> Set[str]:
        self._require(task_id)
        seen: Set[str] = set()
        stack = list(edges[task_id])
        while stack:
            u = stack.pop()
            if u in seen:
                continue
            seen.add(u)
            stack.extend(edges[u])
        return seen

    def all_prerequisites(self, task_id: str) -> Set[str]:
        """Every task that must finish, directly or transitively, before task_id."""
        return self._closure(task_id, self._pre)

    def all_dependents(self, task_id: str) -> Set[str]:
        return self._closure(task_id, self._post)

    def shortest_dependency_path(self, from_id: str, to_id: str) -> List[str]:
        """Fewest-edges chain from from_id down to to_id following dependents.
        Empty list when to_id does not depend on from_id."""
        self._require(from_id)
        self._require(to_id)
        if from_id == to_id:
            return [from_id]
        parents: Dict[str, str] = {}
        q = deque([from_id])
        seen = {from_id}
        while q:
            u = q.popleft()
            for v in sorted(self._post[u], key=id_sort_key):
                if v in seen:
                    continue
                seen.add(v)
                parents[v] = u
                if v == to_id:
                    path = [v]
                    while path[-1] != from_id:
                        path.append(parents[path[-1]])
                    return list(reversed(path))
                q.append(v)
        return []

    # ------------------------------
    # Ordering and structure
    # ------------------------------

    def topological_order(self, ids: Optional[Iterable[str]] = None) -> List[str]:
        """Kahn's algorithm over the given subset (default: every node), taking
        the lowest ready id first."""
        nodes = set(self._pre) if ids is None else {i for i in ids if i in self._pre}
        indeg = {u: sum(1 for p in self._pre[u] if p in nodes) for u in nodes}
        ready = [(id_sort_key(u), u) for u, d in indeg.items() if d == 0]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            _, u = heapq.heappop(ready)
            order.append(u)
            for v in self._post[u]:
                if v in indeg:
                    indeg[v] -= 1
                    if indeg[v] == 0:
                        heapq.heappush(ready, (id_sort_key(v), v))
        return order

    def sources(self) -> List[str]:
        return [u for u in self.task_ids() if not self._pre[u]]

    def sinks(self) -> List[str]:
        return [u for u in self.task_ids() if not self._post[u]]

    def blocking_prerequisites(self, task_id: str, completed_ids: Iterable[str]) -> List[str]:
        """Direct prerequisites of task_id that are not completed yet."""
        done = set(completed_ids)
        return sorted((p for p in self.pre_dependencies_of(task_id) if p not in done), key=id_sort_key)

    def can_start(self, task_id: str, completed_ids: Iterable[str]) -> bool:
        return not self.blocking_prerequisites(task_id, completed_ids)

    def find_bottlenecks(self, ids: Optional[Iterable[str]] = None) -> List[str]:
        """Tasks with the most incoming plus outgoing edges: the top quarter,
        at least one."""
        nodes = self.task_ids() if ids is None else [i for i in self.task_ids() if i in set(ids)]
        if not nodes:
            return []
        degree = {u: len(self._pre[u]) + len(self._post[u]) for u in nodes}
        limit = max(1, len(nodes) // 4)
        ranked = sorted(nodes, key=lambda u: (-degree[u], id_sort_key(u)))
        return ranked[:limit]
