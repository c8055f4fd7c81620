"""Tests for the history/context log and the assistant context export."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from taskmaster.core.assistant import render_task_context, write_task_context
from taskmaster.models.context import HistoryAction, HistoryEntry
from taskmaster.models.task import Subtask, SubtaskStatus, Task, TaskList, TaskStatus
from taskmaster.store.context_log import ContextLog, ContextUnavailableError, render_summary
from taskmaster.util.paths import StoreLocation


@pytest.fixture
def location(tmp_path):
    return StoreLocation.for_directory(tmp_path / "tasks")


@pytest.fixture
def log(location):
    log = ContextLog(location, lock_timeout=0.2)
    log.create()
    return log


def _task(task_id: int, status: TaskStatus = TaskStatus.PENDING, priority: int = 2) -> Task:
    return Task(id=task_id, title=f"Task {task_id}", status=status, priority=priority)


def _raw(location: StoreLocation) -> dict:
    return json.loads(location.context_file.read_text(encoding="utf-8"))


class TestAppend:
    """Appending entries and tracking the active task."""

    def test_entry_is_written_in_camel_case(self, log, location):
        log.append(1, "Task 1", HistoryAction.START, "Started", {"oldStatus": "pending"})
        raw = _raw(location)
        entry = raw["taskHistory"][0]
        assert entry["taskId"] == 1
        assert entry["taskTitle"] == "Task 1"
        assert entry["action"] == "start"
        assert entry["timestamp"].endswith("Z")
        assert raw["lastUpdated"] == entry["timestamp"]

    def test_start_sets_and_complete_clears_active(self, log):
        log.append(1, "Task 1", HistoryAction.START, "Started")
        assert log.load().current_context.active_task == 1
        log.append(1, "Task 1", HistoryAction.COMPLETE, "Done")
        assert log.load().current_context.active_task is None

    def test_complete_of_other_task_keeps_active(self, log):
        log.append(1, "Task 1", HistoryAction.START, "Started")
        log.append(2, "Task 2", HistoryAction.COMPLETE, "Done")
        assert log.load().current_context.active_task == 1

    def test_update_keeps_active(self, log):
        log.append(1, "Task 1", HistoryAction.START, "Started")
        log.append(1, "Task 1", HistoryAction.UPDATE, "Note")
        current = log.load().current_context
        assert current.active_task == 1
        assert current.summary == "Note"

    def test_release_only_affects_active_task(self, log):
        log.append(1, "Task 1", HistoryAction.START, "Started")
        log.append(2, "Task 2", HistoryAction.UPDATE, "Deferred", release_active=True)
        assert log.load().current_context.active_task == 1
        log.append(1, "Task 1", HistoryAction.UPDATE, "Deferred", release_active=True)
        assert log.load().current_context.active_task is None

    def test_entries_are_never_rewritten(self, log, location):
        log.append(1, "Task 1", HistoryAction.START, "Started")
        first = _raw(location)["taskHistory"][0]
        log.append(1, "Task 1", HistoryAction.COMPLETE, "Done")
        assert _raw(location)["taskHistory"][0] == first

    def test_append_without_log(self, location):
        with pytest.raises(ContextUnavailableError):
            ContextLog(location).append(1, "Task 1", HistoryAction.START, "Started")

    def test_unknown_keys_survive_append(self, log, location):
        raw = _raw(location)
        raw["owner"] = "me"
        location.context_file.write_text(json.dumps(raw), encoding="utf-8")
        log.append(1, "Task 1", HistoryAction.START, "Started")
        assert _raw(location)["owner"] == "me"


class TestLoad:
    def test_invalid_json(self, log, location):
        location.context_file.write_text("[oops", encoding="utf-8")
        with pytest.raises(ContextUnavailableError):
            log.load()

    def test_invalid_entry(self, log, location):
        raw = _raw(location)
        raw["taskHistory"] = [{"taskId": 1, "taskTitle": "A", "action": "explode"}]
        location.context_file.write_text(json.dumps(raw), encoding="utf-8")
        with pytest.raises(ContextUnavailableError):
            log.load()

    def test_context_error_is_environment_failure(self, location):
        with pytest.raises(ContextUnavailableError) as exc_info:
            ContextLog(location).load()
        assert exc_info.value.exit_code == 2


class TestQueries:
    """Derived views over the log."""

    def test_history_for_filters_by_task(self, log):
        log.append(1, "Task 1", HistoryAction.START, "a")
        log.append(2, "Task 2", HistoryAction.UPDATE, "b")
        log.append(1, "Task 1", HistoryAction.COMPLETE, "c")
        assert [e.summary for e in log.history_for(1)] == ["a", "c"]

    def test_history_view_is_restartable(self, log):
        log.append(1, "Task 1", HistoryAction.START, "a")
        history = log.history_for(1)
        assert list(history) == list(history)
        assert bool(history) is True
        assert bool(log.history_for(9)) is False

    def test_grouped_history(self, log):
        log.append(2, "Task 2", HistoryAction.START, "a")
        log.append(1, "Task 1", HistoryAction.UPDATE, "b")
        log.append(2, "Task 2", HistoryAction.COMPLETE, "c")
        groups = log.grouped_history()
        assert list(groups) == [2, 1]
        assert [e.summary for e in groups[2]] == ["a", "c"]

    def test_project_summary(self, log):
        task_list = TaskList(
            project="Demo",
            tasks=[_task(1, TaskStatus.DONE), _task(2, TaskStatus.IN_PROGRESS), _task(3)],
        )
        log.append(2, "Task 2", HistoryAction.START, "Working on 2")

        summary = log.project_summary(task_list)

        assert summary.total == 3
        assert summary.done == 1
        assert summary.percent_done == 33
        assert summary.counts == {"pending": 1, "in-progress": 1, "done": 1, "deferred": 0}
        assert summary.active_task_id == 2
        assert summary.last_activity == "Working on 2"

    def test_summary_of_empty_project(self, log):
        summary = log.project_summary(TaskList(project="Demo", tasks=[]))
        assert summary.percent_done == 0
        assert summary.active_task_id is None
        assert summary.last_activity == "Project was initialized"

    def test_render_summary(self, log):
        task_list = TaskList(project="Demo", tasks=[_task(1, TaskStatus.IN_PROGRESS), _task(2)])
        log.append(1, "Task 1", HistoryAction.START, "Working on 1")

        digest = render_summary(log.project_summary(task_list))

        assert digest.splitlines()[0] == "Project: Demo (v1.0.0)"
        assert "in progress: 1, pending: 1, deferred: 0" in digest
        assert "Active task: #1 Task 1" in digest
        assert digest.endswith("Last activity: Working on 1")

    def test_summary_is_read_only(self, log, location):
        before = location.context_file.read_bytes()
        log.project_summary(TaskList(project="Demo", tasks=[_task(1)]))
        assert location.context_file.read_bytes() == before

    def test_suggest_continue(self, log):
        log.append(2, "Task 2", HistoryAction.START, "a")
        task_list = TaskList(project="Demo", tasks=[_task(1, priority=1), _task(2, TaskStatus.IN_PROGRESS)])
        suggestion = log.suggest(task_list)
        assert suggestion.kind == "continue"
        assert suggestion.task_id == 2

    def test_suggest_start(self, log):
        task_list = TaskList(project="Demo", tasks=[_task(1, priority=3), _task(2, priority=1)])
        suggestion = log.suggest(task_list)
        assert suggestion.kind == "start"
        assert suggestion.task_id == 2

    def test_suggest_nothing(self, log):
        assert log.suggest(TaskList(project="Demo", tasks=[_task(1, TaskStatus.DONE)])) is None


class TestNeedsRefresh:
    def test_other_task_active(self, log):
        log.append(1, "Task 1", HistoryAction.START, "a")
        assert log.needs_refresh(2, timedelta(hours=1)) is True

    def test_fresh_active_task(self, log):
        log.append(1, "Task 1", HistoryAction.START, "a")
        assert log.needs_refresh(1, timedelta(hours=1)) is False

    def test_old_context(self, log, location):
        log.append(1, "Task 1", HistoryAction.START, "a")
        raw = _raw(location)
        raw["lastUpdated"] = "2020-01-01T00:00:00.000Z"
        location.context_file.write_text(json.dumps(raw), encoding="utf-8")
        assert log.needs_refresh(1, timedelta(hours=1)) is True

    def test_missing_log(self, location):
        assert ContextLog(location).needs_refresh(1, timedelta(hours=1)) is True


class TestAssistantContext:
    """Markdown export for the coding assistant."""

    def test_render(self):
        task = Task(
            id=3,
            title="Parser",
            description="Parse things",
            status=TaskStatus.IN_PROGRESS,
            priority=1,
            subtasks=[
                Subtask(id="3.1", title="Lexer", status=SubtaskStatus.DONE),
                Subtask(id="3.2", title="Grammar"),
            ],
        )
        entry = HistoryEntry(
            task_id=3,
            task_title="Parser",
            action=HistoryAction.START,
            summary="Kicked off",
            timestamp="2024-03-01T10:00:00.000Z",
        )

        content = render_task_context(task, [entry])

        assert content.startswith("<task-context>\n# Task #3: Parser\n")
        assert "Status: In progress" in content
        assert "Priority: 1" in content
        assert "- [x] 3.1 Lexer" in content
        assert "- [ ] 3.2 Grammar" in content
        assert "Started: Kicked off" in content
        assert content.endswith("</task-context>\n")

    def test_render_without_history(self):
        content = render_task_context(_task(1))
        assert "No history yet." in content
        assert "## Subtasks" not in content

    def test_write_creates_directory(self, tmp_path):
        location = StoreLocation.for_directory(tmp_path / "fresh")
        assert write_task_context(location, _task(1)) is True
        assert location.assistant_file.exists()

    def test_write_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        location = StoreLocation.for_directory(blocker / "tasks")
        assert write_task_context(location, _task(1)) is False
