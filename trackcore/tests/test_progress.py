"""
Tests for engine/progress.py (progress / completed lock step).
"""
import pytest

from trackcore.app.errors import RangeError
from trackcore.engine.progress import is_consistent, normalize, set_completed, set_progress

from conftest import make_task


class TestSetProgress:
    def test_hundred_completes_then_uncomplete_keeps_progress(self):
        task = make_task("T1", progress=60)
        set_progress(task, 100)
        assert task.progress == 100
        assert task.completed is True

        set_completed(task, False)
        assert task.progress == 100
        assert task.completed is False

    def test_lowering_progress_reopens(self):
        task = make_task("T1")
        set_completed(task, True)
        set_progress(task, 40)
        assert task.progress == 40
        assert task.completed is False
        assert is_consistent(task)

    @pytest.mark.parametrize("value", [-1, 101, 250])
    def test_out_of_range_rejected(self, value):
        task = make_task("T1", progress=30)
        with pytest.raises(RangeError):
            set_progress(task, value)
        assert task.progress == 30
        assert task.completed is False

    @pytest.mark.parametrize("value", [50.5, "50", True, None])
    def test_non_integer_rejected(self, value):
        task = make_task("T1")
        with pytest.raises(ValueError):
            set_progress(task, value)


class TestSetCompleted:
    def test_complete_forces_hundred(self):
        task = make_task("T1", progress=10)
        set_completed(task, True)
        assert task.progress == 100
        assert is_consistent(task)

    def test_every_intermediate_value_is_consistent(self):
        task = make_task("T1")
        for value in range(0, 101, 5):
            set_progress(task, value)
            assert is_consistent(task), f"inconsistent at {value}"


class TestNormalize:
    def test_repairs_completed_with_stale_progress(self):
        task = make_task("T1", progress=70, completed=True)
        normalize(task)
        assert task.progress == 100
        assert task.completed is True

    def test_leaves_reopened_task_alone(self):
        task = make_task("T1", progress=100, completed=False)
        normalize(task)
        assert task.progress == 100
        assert task.completed is False
