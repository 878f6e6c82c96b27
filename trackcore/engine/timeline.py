from datetime import date
from typing import Dict, Iterable, List, Optional

from trackcore.app.db.models import (
    EntryKind,
    Milestone,
    TaskNode,
    TimelineEntry,
    milestone_entry_id,
    task_entry_id,
)
from trackcore.app.errors import InvalidRangeError
from trackcore.engine.dependency_graph import DependencyGraph, id_sort_key


def _task_in_window(task: TaskNode, start: date, end: date) -> bool:
    # Unscheduled tasks have no span to place
    if task.start_date is None:
        return False
    # Open-ended tasks are always shown
    if task.end_date is None:
        return True
    return task.start_date <= end and task.end_date >= start


def _milestone_in_window(m: Milestone, start: date, end: date) -> bool:
    return start <= m.date <= end


def build_timeline(
    project_id: Optional[str],
    start_date: date,
    end_date: date,
    tasks: Iterable[TaskNode],
    milestones: Iterable[Milestone],
    graph: DependencyGraph,
) -> List[TimelineEntry]:
    """Turn a project's tasks and milestones into Gantt entries for [start_date, end_date].

    Tasks come first ordered by start date then id, followed by milestones ordered by
    date then id. A task's dependency pairs are emitted only when the prerequisite is
    also in the result. Pure: reads its arguments, touches nothing else.
    """
    if end_date < start_date:
        raise InvalidRangeError(f"End date {end_date} is before start date {start_date}")

    def _same_project(pid: Optional[str]) -> bool:
        return project_id is None or pid == project_id

    shown_tasks = sorted(
        (t for t in tasks if _same_project(t.project_id) and _task_in_window(t, start_date, end_date)),
        key=lambda t: (t.start_date, id_sort_key(t.id)),
    )
    shown_milestones = sorted(
        (m for m in milestones if _same_project(m.project_id) and _milestone_in_window(m, start_date, end_date)),
        key=lambda m: (m.date, id_sort_key(m.id)),
    )

    included = {t.id for t in shown_tasks}
    entries: List[TimelineEntry] = []
    for t in shown_tasks:
        pres = graph.pre_dependencies_of(t.id) if t.id in graph else set()
        deps = tuple(
            (task_entry_id(p), task_entry_id(t.id))
            for p in sorted(pres, key=id_sort_key)
            if p in included
        )
        entries.append(TimelineEntry(
            id=task_entry_id(t.id),
            title=t.title,
            start_date=t.start_date,
            end_date=t.end_date,
            kind=EntryKind.TASK,
            dependencies=deps,
            source_id=t.id,
            progress=t.progress,
            completed=t.completed,
            priority=t.priority,
            subsystem_id=t.subsystem_id,
            assigned_member_ids=frozenset(t.assigned_member_ids),
        ))
    for m in shown_milestones:
        entries.append(TimelineEntry(
            id=milestone_entry_id(m.id),
            title=m.name,
            start_date=m.date,
            end_date=m.date,
            kind=EntryKind.MILESTONE,
            source_id=m.id,
        ))
    return entries


def prune_dependencies(entries: Iterable[TimelineEntry]) -> List[TimelineEntry]:
    """Copies of the entries whose dependency pairs only point at entries still present."""
    entries = list(entries)
    present = {e.id for e in entries}
    out: List[TimelineEntry] = []
    for e in entries:
        kept = tuple(d for d in e.dependencies if d[0] in present and d[1] in present)
        out.append(e if kept == e.dependencies else e.model_copy(update={"dependencies": kept}))
    return out


def to_chart_data(entries: Iterable[TimelineEntry], show_dependencies: bool = True) -> List[Dict]:
    """Plain rows for the chart widget."""
    rows: List[Dict] = []
    for e in entries:
        rows.append({
            "id": e.id,
            "label": e.title,
            "type": "milestone" if e.is_milestone else "task",
            "start": e.start_date.isoformat(),
            "end": e.end_date.isoformat() if e.end_date else None,
            "progress": e.progress,
            "completed": e.completed,
            "critical": e.on_critical_path,
            "subsystem": e.subsystem_id,
            "assignees": sorted(e.assigned_member_ids),
            "dependencies": [
                {"source": src, "target": dst, "type": "finish-to-start"}
                for src, dst in e.dependencies
            ] if show_dependencies else [],
        })
    return rows
