from .cpa import (
    CriticalPathResult,
    TaskSchedule,
    run_cpa,
    get_task_slack,
)
from .dependency_graph import (
    DependencyGraph,
    DependencyUpdate,
    id_sort_key,
)
from .filters import FilterOption, apply_filter, filter_criteria, parse_filter_option
from .formatting import format_dependency_graph
from .progress import set_progress, set_completed, normalize, is_consistent
from .timeline import build_timeline, prune_dependencies, to_chart_data
from .zoom import ZoomController

__all__ = [
    "DependencyGraph",
    "DependencyUpdate",
    "id_sort_key",
    "run_cpa",
    "get_task_slack",
    "CriticalPathResult",
    "TaskSchedule",
    "build_timeline",
    "prune_dependencies",
    "to_chart_data",
    "FilterOption",
    "apply_filter",
    "filter_criteria",
    "parse_filter_option",
    "ZoomController",
    "set_progress",
    "set_completed",
    "normalize",
    "is_consistent",
    "format_dependency_graph",
]
