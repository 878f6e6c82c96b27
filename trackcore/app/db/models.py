import datetime as dt
from datetime import date
from enum import Enum
from typing import FrozenSet, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class EntryKind(str, Enum):
    TASK = "TASK"
    MILESTONE = "MILESTONE"


class TaskNode(BaseModel):
    """A schedulable task. Edges live in the DependencyGraph; the two id sets
    here are the graph's view of this node, written back by graph.sync_task()."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    title: str = ""
    estimated_days: Optional[float] = Field(None, ge=0)
    actual_days: float = Field(0.0, ge=0)
    priority: Priority = Priority.MEDIUM
    progress: int = Field(0, ge=0, le=100)
    completed: bool = False
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    project_id: Optional[str] = None
    subsystem_id: Optional[str] = None
    assigned_member_ids: Set[str] = set()
    pre_dependencies: Set[str] = set()
    post_dependencies: Set[str] = set()

    @model_validator(mode="after")
    def _end_not_before_start(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class Milestone(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str
    date: dt.date
    project_id: Optional[str] = None
    description: Optional[str] = None


class TimelineEntry(BaseModel):
    """One renderable row of the Gantt chart. Read-only once built."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    start_date: date
    end_date: Optional[date] = None
    kind: EntryKind
    dependencies: Tuple[Tuple[str, str], ...] = ()
    on_critical_path: bool = False
    # Copied from the backing task so filters need no store lookups
    source_id: str
    progress: int = 0
    completed: bool = False
    priority: Optional[Priority] = None
    subsystem_id: Optional[str] = None
    assigned_member_ids: FrozenSet[str] = frozenset()

    @property
    def is_milestone(self) -> bool:
        return self.kind == EntryKind.MILESTONE


def task_entry_id(task_id: str) -> str:
    return f"task_{task_id}"


def milestone_entry_id(milestone_id: str) -> str:
    return f"milestone_{milestone_id}"
