"""Error taxonomy shared by the graph, timeline and editing code."""
from typing import Optional


class TrackCoreError(Exception):
    """Base class for every expected failure raised by trackcore."""


class TaskNotFoundError(TrackCoreError, KeyError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")

    def __str__(self) -> str:
        return self.args[0]


class SelfDependencyError(TrackCoreError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__("A task cannot depend on itself")


class CircularDependencyError(TrackCoreError):
    def __init__(self, dependent_id: str, prerequisite_id: str, path: Optional[list] = None):
        self.dependent_id = dependent_id
        self.prerequisite_id = prerequisite_id
        self.path = list(path or [])
        super().__init__("Adding this dependency would create a circular dependency")


class RangeError(TrackCoreError, ValueError):
    """Progress value outside [0, 100]."""


class InvalidRangeError(TrackCoreError, ValueError):
    """End date before start date, on task dates or timeline windows."""


class UnsupportedFilterError(TrackCoreError, ValueError):
    pass


class MissingFilterCriteriaError(TrackCoreError, ValueError):
    pass


class ValidationError(TrackCoreError):
    """Aggregated field failures of an edit session, as one newline-joined message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SessionClosedError(TrackCoreError):
    pass
