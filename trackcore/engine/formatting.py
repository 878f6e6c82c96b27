from typing import Dict, List, Optional

from trackcore.app.db.models import TaskNode
from trackcore.engine.cpa import CriticalPathResult
from trackcore.engine.dependency_graph import DependencyGraph


def format_dependency_graph(
    graph: DependencyGraph,
    tasks: Optional[List[TaskNode]] = None,
    cpa: Optional[CriticalPathResult] = None,
) -> str:
    """Return a human-readable dump of the graph for logs and debugging.
    Durations and critical markers are included when tasks / a CPA result are given."""
    by_id: Dict[str, TaskNode] = {t.id: t for t in (tasks or [])}
    critical = set(cpa.critical_path) if cpa else set()
    lines: List[str] = []
    lines.append(f"Dependency Graph for project {graph.project_id}")
    lines.append("")
    lines.append("Nodes (duration in days):")
    for k in graph.task_ids():
        t = by_id.get(k)
        duration = f"{t.estimated_days:.2f}" if t is not None and t.estimated_days is not None else "-"
        marker = " *" if k in critical else ""
        lines.append(f" - {k}: {duration}{marker}")
    lines.append("")
    lines.append("Edges (prerequisite -> dependent):")
    edges = graph.edges()
    if edges:
        for u, v in edges:
            lines.append(f" - {u} -> {v}")
    else:
        lines.append(" - (no dependencies)")
    if cpa is not None:
        lines.append("")
        lines.append(f"Critical path ({cpa.project_duration:.2f} days): " + (" -> ".join(cpa.critical_path) or "(empty)"))
    return "\n".join(lines)
