from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from trackcore.app.db.models import TimelineEntry
from trackcore.app.errors import MissingFilterCriteriaError, UnsupportedFilterError
from trackcore.engine.timeline import prune_dependencies


class FilterOption(str, Enum):
    ALL = "ALL"
    CRITICAL_PATH = "CRITICAL_PATH"
    SUBSYSTEM = "SUBSYSTEM"
    TEAM_MEMBER = "TEAM_MEMBER"
    OVERDUE = "OVERDUE"
    COMPLETED = "COMPLETED"
    BEHIND_SCHEDULE = "BEHIND_SCHEDULE"


def parse_filter_option(value: Union[FilterOption, str, None]) -> FilterOption:
    if value is None:
        return FilterOption.ALL
    if isinstance(value, FilterOption):
        return value
    try:
        return FilterOption(str(value).strip().upper())
    except ValueError:
        raise UnsupportedFilterError(f"Unsupported filter: {value!r}") from None


def _criterion(criteria: Mapping[str, Any], key: str, option: FilterOption) -> Any:
    value = criteria.get(key)
    if value is None or value == "":
        raise MissingFilterCriteriaError(f"Filter {option.value} requires '{key}'")
    return value


def _today(criteria: Mapping[str, Any]) -> date:
    today = criteria.get("today")
    if isinstance(today, str):
        return date.fromisoformat(today)
    return today or date.today()


def _is_overdue(e: TimelineEntry, today: date) -> bool:
    return not e.is_milestone and e.end_date is not None and e.end_date < today and not e.completed


def _is_behind_schedule(e: TimelineEntry, today: date) -> bool:
    """In-flight task whose progress trails the elapsed share of its span."""
    if e.is_milestone or e.end_date is None or e.completed:
        return False
    if e.start_date > today or e.end_date < today:
        return False
    total_days = (e.end_date - e.start_date).days
    if total_days == 0:
        return e.progress < 100
    expected = (today - e.start_date).days * 100 // total_days
    return e.progress < expected


def apply_filter(
    entries: Iterable[TimelineEntry],
    filter_option: Union[FilterOption, str, None],
    criteria: Optional[Mapping[str, Any]] = None,
) -> List[TimelineEntry]:
    """Narrow built timeline entries. Returns a new list; the input is left as is.

    CRITICAL_PATH expects entries already annotated by the critical path analyzer.
    SUBSYSTEM and TEAM_MEMBER read 'subsystem_id' / 'member_id' from criteria and let
    milestones through. OVERDUE, COMPLETED and BEHIND_SCHEDULE keep tasks only; 'today'
    in criteria overrides the current date. Dependency pairs pointing at dropped
    entries are removed from the survivors.
    """
    option = parse_filter_option(filter_option)
    criteria = dict(criteria or {})
    entries = list(entries)

    keep: Callable[[TimelineEntry], bool]
    if option == FilterOption.ALL:
        return list(entries)
    elif option == FilterOption.CRITICAL_PATH:
        keep = lambda e: e.is_milestone or e.on_critical_path
    elif option == FilterOption.SUBSYSTEM:
        subsystem_id = str(_criterion(criteria, "subsystem_id", option))
        keep = lambda e: e.is_milestone or e.subsystem_id == subsystem_id
    elif option == FilterOption.TEAM_MEMBER:
        member_id = str(_criterion(criteria, "member_id", option))
        keep = lambda e: e.is_milestone or member_id in e.assigned_member_ids
    elif option == FilterOption.OVERDUE:
        today = _today(criteria)
        keep = lambda e: _is_overdue(e, today)
    elif option == FilterOption.COMPLETED:
        keep = lambda e: not e.is_milestone and e.completed
    elif option == FilterOption.BEHIND_SCHEDULE:
        today = _today(criteria)
        keep = lambda e: _is_behind_schedule(e, today)
    else:
        raise UnsupportedFilterError(f"Unsupported filter: {option.value}")

    return prune_dependencies(e for e in entries if keep(e))


def filter_criteria(subsystem_id: Optional[str] = None, member_id: Optional[str] = None,
                    today: Optional[date] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if subsystem_id is not None:
        out["subsystem_id"] = subsystem_id
    if member_id is not None:
        out["member_id"] = member_id
    if today is not None:
        out["today"] = today
    return out
