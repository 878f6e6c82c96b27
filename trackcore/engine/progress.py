"""Keeps `progress == 100` and `completed` in lock step on a TaskNode.

Every caller that changes either field goes through these functions; they touch
only the node passed in.
"""
import logging

from trackcore.app.db.models import TaskNode
from trackcore.app.errors import RangeError

logger = logging.getLogger(__name__)

COMPLETE = 100


def set_progress(node: TaskNode, value: int) -> TaskNode:
    """Set progress to value (0-100). 100 completes the task; anything lower
    re-opens it. Out-of-range values are rejected, never clamped."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise RangeError(f"Progress must be an integer between 0 and 100, got {value!r}")
    if value < 0 or value > COMPLETE:
        raise RangeError(f"Progress must be between 0 and 100, got {value}")
    node.progress = value
    if value == COMPLETE:
        node.completed = True
    elif node.completed:
        logger.debug("Task %s re-opened by progress %s", node.id, value)
        node.completed = False
    return node


def set_completed(node: TaskNode, flag: bool) -> TaskNode:
    """Marking complete forces progress to 100; un-marking keeps the last progress value."""
    node.completed = bool(flag)
    if node.completed:
        node.progress = COMPLETE
    return node


def is_consistent(node: TaskNode) -> bool:
    return (node.progress == COMPLETE) == bool(node.completed)


def normalize(node: TaskNode) -> TaskNode:
    """Repair a record read from storage where completed is set but progress
    is stale. A task at 100 that is not completed is left alone: that state is
    only reachable through an explicit set_completed(node, False)."""
    if node.completed and node.progress != COMPLETE:
        logger.warning("Task %s is completed with progress=%s; normalizing", node.id, node.progress)
        set_completed(node, True)
    return node
