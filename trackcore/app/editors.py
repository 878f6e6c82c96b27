"""Rule sets and session factories for the task, milestone and dependency editors."""
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel

from trackcore.app.db.models import Milestone, TaskNode
from trackcore.app.db.stores import MilestoneStore, TaskStore
from trackcore.app.session import Rule, Setter, ValidationSession
from trackcore.engine import progress
from trackcore.engine.dependency_graph import DependencyGraph


# ------------------------------
# Tasks
# ------------------------------

def _title_present(t: TaskNode) -> Optional[str]:
    return None if t.title and t.title.strip() else "Task title cannot be empty"


def _estimate_not_negative(t: TaskNode) -> Optional[str]:
    if t.estimated_days is not None and t.estimated_days < 0:
        return "Estimated days must not be negative"
    return None


def _start_present(t: TaskNode) -> Optional[str]:
    return None if t.start_date is not None else "Start date cannot be empty"


def _end_after_start(t: TaskNode) -> Optional[str]:
    if t.start_date and t.end_date and t.end_date < t.start_date:
        return "End date cannot be before start date"
    return None


TASK_RULES: List[Rule] = [_title_present, _estimate_not_negative, _start_present, _end_after_start]

# progress and completed move together, whichever widget changes them
TASK_SETTERS: Dict[str, Setter] = {
    "progress": progress.set_progress,
    "completed": progress.set_completed,
}


def new_task_session(project_id: str, start_date: Optional[date] = None) -> ValidationSession[TaskNode]:
    """Editor for a task that does not exist yet. Opens Clean+Invalid (no title)."""
    draft = TaskNode(id="", project_id=project_id, start_date=start_date or date.today())
    return ValidationSession(draft, TASK_RULES, name="Task", setters=TASK_SETTERS)


def edit_task_session(task: TaskNode) -> ValidationSession[TaskNode]:
    return ValidationSession(task, TASK_RULES, name=f"Task {task.id}", setters=TASK_SETTERS)


def set_task_progress(session: ValidationSession[TaskNode], value: int) -> None:
    """Progress edits go through the invariant so the draft never holds
    progress 100 without completed. RangeError leaves the draft as it was."""
    session.apply(lambda t: progress.set_progress(t, value))


def set_task_completed(session: ValidationSession[TaskNode], flag: bool) -> None:
    session.apply(lambda t: progress.set_completed(t, flag))


def save_task(session: ValidationSession[TaskNode], store: TaskStore) -> bool:
    return session.commit(store.persist)


# ------------------------------
# Milestones
# ------------------------------

def _name_present(m: Milestone) -> Optional[str]:
    return None if m.name and m.name.strip() else "Milestone name cannot be empty"


def _date_present(m: Milestone) -> Optional[str]:
    return None if m.date is not None else "Milestone date cannot be empty"


MILESTONE_RULES: List[Rule] = [_name_present, _date_present]


def new_milestone_session(project_id: str, milestone_id: str) -> ValidationSession[Milestone]:
    # Built without validation: a blank milestone has no date yet
    draft = Milestone.model_construct(id=milestone_id, name="", date=None,
                                      project_id=project_id, description=None)
    return ValidationSession(draft, MILESTONE_RULES, name="Milestone")


def edit_milestone_session(milestone: Milestone) -> ValidationSession[Milestone]:
    return ValidationSession(milestone, MILESTONE_RULES, name=f"Milestone {milestone.id}")


def save_milestone(session: ValidationSession[Milestone], store: MilestoneStore) -> bool:
    return session.commit(store.persist)


# ------------------------------
# Dependencies
# ------------------------------

class DependencyDraft(BaseModel):
    dependent_id: Optional[str] = None
    prerequisite_id: Optional[str] = None


def _dependency_rules(graph: DependencyGraph) -> List[Rule]:
    def both_selected(d: DependencyDraft) -> Optional[str]:
        if not d.dependent_id or not d.prerequisite_id:
            return "Select both a task and its prerequisite"
        return None

    def both_known(d: DependencyDraft) -> Optional[str]:
        missing = [i for i in (d.dependent_id, d.prerequisite_id) if i and i not in graph]
        return f"Task not found: {missing[0]}" if missing else None

    def not_self(d: DependencyDraft) -> Optional[str]:
        if d.dependent_id and d.dependent_id == d.prerequisite_id:
            return "A task cannot depend on itself"
        return None

    return [both_selected, both_known, not_self]


def dependency_session(graph: DependencyGraph, dependent_id: str) -> ValidationSession[DependencyDraft]:
    """Dialog for adding one prerequisite to dependent_id."""
    return ValidationSession(
        DependencyDraft(dependent_id=dependent_id),
        _dependency_rules(graph),
        name=f"Dependency of {dependent_id}",
    )


def commit_dependency(session: ValidationSession[DependencyDraft], graph: DependencyGraph) -> bool:
    """Add the drafted edge. A cycle leaves the graph untouched, the session
    dirty, and the reason in session.error_message()."""
    def _add(d: DependencyDraft) -> DependencyDraft:
        graph.add_dependency(d.dependent_id, d.prerequisite_id)
        return d

    return session.commit(_add)
