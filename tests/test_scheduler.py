"""Tests for the priority scheduler and id parsing."""

from __future__ import annotations

import pytest

from taskmaster.core.errors import InvalidIdError
from taskmaster.core.ids import parse_task_id, parse_task_ref
from taskmaster.core.scheduler import active_tasks, get_current, get_next, progress
from taskmaster.models.task import Subtask, SubtaskStatus, Task, TaskStatus
from taskmaster.store.loader import next_id


def _task(task_id: int, priority: int = 2, status: TaskStatus = TaskStatus.PENDING, **kwargs) -> Task:
    return Task(id=task_id, title=f"Task {task_id}", status=status, priority=priority, **kwargs)


class TestGetNext:
    """Pending task with the best priority, ties in list order."""

    def test_empty(self):
        assert get_next([]) is None

    def test_first_priority_one_wins(self):
        tasks = [_task(1, 3), _task(2, 1), _task(3, 2), _task(4, 1)]
        assert get_next(tasks).id == 2

    def test_never_lower_priority_while_high_pending(self):
        tasks = [_task(1, 2), _task(2, 3), _task(3, 1)]
        assert get_next(tasks).priority == 1

    def test_list_order_not_id_order(self):
        tasks = [_task(7, 2), _task(3, 2)]
        assert get_next(tasks).id == 7

    def test_only_pending_considered(self):
        tasks = [
            _task(1, 1, TaskStatus.DONE),
            _task(2, 1, TaskStatus.IN_PROGRESS),
            _task(3, 1, TaskStatus.DEFERRED),
            _task(4, 3),
        ]
        assert get_next(tasks).id == 4

    def test_nothing_pending(self):
        tasks = [_task(1, 1, TaskStatus.DONE), _task(2, 2, TaskStatus.DEFERRED)]
        assert get_next(tasks) is None

    def test_does_not_reorder_input(self):
        tasks = [_task(1, 3), _task(2, 1)]
        get_next(tasks)
        assert [t.id for t in tasks] == [1, 2]


class TestCurrent:
    def test_no_active(self):
        assert get_current([_task(1)]) is None

    def test_first_of_several_active(self):
        tasks = [_task(1), _task(2, status=TaskStatus.IN_PROGRESS), _task(3, status=TaskStatus.IN_PROGRESS)]
        assert get_current(tasks).id == 2
        assert [t.id for t in active_tasks(tasks)] == [2, 3]


class TestProgress:
    def test_empty(self):
        stats = progress([])
        assert stats.total == 0
        assert stats.percent_done == 0.0

    def test_counts_and_current_subtasks(self):
        active = _task(
            2,
            status=TaskStatus.IN_PROGRESS,
            subtasks=[
                Subtask(id="2.1", title="a", status=SubtaskStatus.DONE),
                Subtask(id="2.2", title="b"),
            ],
        )
        tasks = [_task(1, status=TaskStatus.DONE), active, _task(3), _task(4, status=TaskStatus.DEFERRED)]

        stats = progress(tasks)

        assert (stats.done, stats.in_progress, stats.pending, stats.deferred) == (1, 1, 1, 1)
        assert stats.percent_done == 25.0
        assert stats.current_task_id == 2
        assert (stats.current_subtasks_done, stats.current_subtasks_total) == (1, 2)


class TestNextId:
    def test_empty(self):
        assert next_id([]) == 1

    @pytest.mark.parametrize("ids", [[1], [1, 2, 3], [5, 2], [10, 40, 7]])
    def test_greater_than_every_id(self, ids):
        new_id = next_id([_task(i) for i in ids])
        assert all(new_id > i for i in ids)
        assert new_id == max(ids) + 1


class TestParseRef:
    """Task and subtask references."""

    def test_task(self):
        ref = parse_task_ref("3")
        assert ref.task_id == 3
        assert ref.subtask_id is None

    def test_hash_prefix(self):
        assert parse_task_ref("#12").task_id == 12

    def test_subtask(self):
        ref = parse_task_ref("3.2")
        assert ref.task_id == 3
        assert ref.subtask_id == "3.2"
        assert str(ref) == "3.2"

    def test_int_input(self):
        assert parse_task_ref(4).task_id == 4

    @pytest.mark.parametrize("token", ["", "abc", "0", "-1", "3.", "3.0", "1.2.3", "3a"])
    def test_invalid(self, token):
        with pytest.raises(InvalidIdError):
            parse_task_ref(token)

    def test_task_id_rejects_subtask(self):
        with pytest.raises(InvalidIdError):
            parse_task_id("3.1")
