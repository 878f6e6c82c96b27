"""
Tests for engine/filters.py.
"""
from datetime import date

import pytest

from trackcore.app.errors import MissingFilterCriteriaError, UnsupportedFilterError
from trackcore.engine.cpa import run_cpa
from trackcore.engine.dependency_graph import DependencyGraph
from trackcore.engine.filters import FilterOption, apply_filter, filter_criteria, parse_filter_option
from trackcore.engine.timeline import build_timeline

from conftest import make_task


@pytest.fixture
def entries(sample_milestones):
    tasks = [
        make_task("1", date(2024, 1, 1), date(2024, 1, 5), subsystem_id="drive",
                  assigned_member_ids={"ana"}),
        make_task("2", date(2024, 1, 5), date(2024, 1, 9), subsystem_id="arm",
                  assigned_member_ids={"ana", "ben"}, pre_dependencies={"1"}),
        make_task("3", date(2024, 1, 2), date(2024, 1, 4), estimate=1.0, subsystem_id="drive",
                  progress=100, completed=True),
        make_task("4", date(2024, 1, 10), date(2024, 1, 20), estimate=1.0, progress=10),
    ]
    graph = DependencyGraph.from_tasks(tasks, "P1")
    built = build_timeline("P1", date(2024, 1, 1), date(2024, 1, 31), tasks, sample_milestones, graph)
    return run_cpa(tasks, graph).annotate(built)


def _ids(result):
    return [e.id for e in result]


class TestApplyFilter:
    def test_all_returns_everything(self, entries):
        result = apply_filter(entries, FilterOption.ALL)
        assert result == entries
        assert result is not entries

    def test_critical_path_keeps_milestones(self, entries):
        result = apply_filter(entries, "CRITICAL_PATH")
        assert _ids(result) == ["task_1", "task_2", "milestone_M1"]

    def test_subsystem(self, entries):
        result = apply_filter(entries, FilterOption.SUBSYSTEM, {"subsystem_id": "drive"})
        assert _ids(result) == ["task_1", "task_3", "milestone_M1"]

    def test_team_member_prunes_dependencies(self, entries):
        result = apply_filter(entries, FilterOption.TEAM_MEMBER, {"member_id": "ben"})
        assert _ids(result) == ["task_2", "milestone_M1"]
        assert result[0].dependencies == ()

    def test_overdue(self, entries):
        result = apply_filter(entries, FilterOption.OVERDUE, {"today": date(2024, 1, 8)})
        assert _ids(result) == ["task_1"]

    def test_completed(self, entries):
        assert _ids(apply_filter(entries, FilterOption.COMPLETED)) == ["task_3"]

    def test_behind_schedule(self, entries):
        # Task 4 is half way through its span at 10%
        result = apply_filter(entries, FilterOption.BEHIND_SCHEDULE, filter_criteria(today=date(2024, 1, 15)))
        assert _ids(result) == ["task_4"]

    def test_today_as_iso_string(self, entries):
        result = apply_filter(entries, FilterOption.OVERDUE, {"today": "2024-01-08"})
        assert _ids(result) == ["task_1"]

    def test_input_is_not_mutated(self, entries):
        snapshot = [e.model_copy() for e in entries]
        for option in FilterOption:
            apply_filter(entries, option, {"subsystem_id": "drive", "member_id": "ana", "today": date(2024, 2, 1)})
        assert entries == snapshot

    def test_missing_criteria(self, entries):
        with pytest.raises(MissingFilterCriteriaError):
            apply_filter(entries, FilterOption.SUBSYSTEM)
        with pytest.raises(MissingFilterCriteriaError):
            apply_filter(entries, FilterOption.TEAM_MEMBER, {"member_id": ""})

    def test_unsupported_option(self, entries):
        with pytest.raises(UnsupportedFilterError):
            apply_filter(entries, "BY_COLOUR")


def test_parse_filter_option():
    assert parse_filter_option(None) == FilterOption.ALL
    assert parse_filter_option(" overdue ") == FilterOption.OVERDUE
    with pytest.raises(ValueError):
        parse_filter_option("nope")


def test_filter_criteria_drops_unset_keys():
    assert filter_criteria(subsystem_id="arm") == {"subsystem_id": "arm"}
    assert filter_criteria() == {}
