"""History/context log - append-only audit trail kept beside the task store."""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from taskmaster.core.scheduler import get_next
from taskmaster.models.context import (
    Context,
    HistoryAction,
    HistoryEntry,
    ProjectSummary,
    Suggestion,
    TaskHistory,
)
from taskmaster.models.task import TaskList, TaskStatus
from taskmaster.store.loader import StoreError, file_lock, read_json, write_json_atomic
from taskmaster.util.paths import StoreLocation
from taskmaster.util.time import format_age, format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class ContextUnavailableError(StoreError):
    """context.json is missing or unreadable."""

    def __init__(self, message: str):
        super().__init__(
            message,
            retriable=False,
            suggested_action="Run 'task-master init' to recreate the context log",
        )


class ContextLog:
    """Reads and appends to context.json.

    The task store holds current state only; this log is the record of
    what happened and when.
    """

    def __init__(self, location: StoreLocation, lock_timeout: float = 5.0):
        self.location = location
        self.lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self.location.context_file

    def exists(self) -> bool:
        return self.path.exists()

    def create(self) -> Context:
        """Write the initial, empty context document."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        context = Context()
        with file_lock(self.location.context_lock, self.lock_timeout):
            self._write(context)
        logger.info("Created context log at %s", self.path)
        return context

    def load(self) -> Context:
        """Load the context document.

        Raises:
            ContextUnavailableError: If the file is missing, not JSON, or invalid.
        """
        try:
            raw = read_json(self.path)
        except StoreError as e:
            raise ContextUnavailableError(f"Context log unavailable: {e}") from e

        try:
            return Context.model_validate(raw)
        except ValidationError as e:
            raise ContextUnavailableError(
                f"Context log at {os.path.normpath(self.path)} is invalid: {e}"
            ) from e

    def append(
        self,
        task_id: int,
        task_title: str,
        action: HistoryAction,
        summary: str,
        details: dict[str, Any] | None = None,
        release_active: bool = False,
    ) -> HistoryEntry:
        """Append one history entry and refresh the current context.

        `start` makes the task active. `complete` clears the active task
        only when it is this task, and so does release_active; other
        actions leave it alone.

        Raises:
            ContextUnavailableError: If the context cannot be loaded.
            StoreLockError: If the context lock cannot be acquired.
            StoreWriteError: If the context cannot be written.
        """
        if not self.exists():
            raise ContextUnavailableError(f"Context log not found: {os.path.normpath(self.path)}")

        with file_lock(self.location.context_lock, self.lock_timeout):
            context = self.load()

            entry = HistoryEntry(
                task_id=task_id,
                task_title=task_title,
                action=action,
                summary=summary,
                details=details or {},
            )
            context.task_history.append(entry)

            context.last_updated = entry.timestamp
            current = context.current_context
            if action == HistoryAction.START:
                current.active_task = task_id
            elif current.active_task == task_id and (
                action == HistoryAction.COMPLETE or release_active
            ):
                current.active_task = None
            current.summary = summary

            self._write(context)

        logger.debug("Recorded %s for task %s: %s", action.value, task_id, summary)
        return entry

    def history_for(self, task_id: int) -> TaskHistory:
        """Entries for one task in chronological order."""
        return TaskHistory(task_id, self.load().task_history)

    def all_history(self) -> list[HistoryEntry]:
        return list(self.load().task_history)

    def grouped_history(self) -> dict[int, list[HistoryEntry]]:
        """Full history grouped by task id, groups in first-seen order."""
        groups: dict[int, list[HistoryEntry]] = {}
        for entry in self.load().task_history:
            groups.setdefault(entry.task_id, []).append(entry)
        return groups

    def project_summary(self, task_list: TaskList) -> ProjectSummary:
        """Derive status counts and the latest activity. Does not write."""
        context = self.load()
        counts = task_list.count_by_status()
        total = len(task_list.tasks)
        done = counts[TaskStatus.DONE]

        active_id = context.current_context.active_task
        active = task_list.get_task(active_id) if active_id is not None else None

        return ProjectSummary(
            project=task_list.project,
            version=task_list.version,
            total=total,
            counts={status.value: count for status, count in counts.items()},
            percent_done=round(done * 100 / total) if total else 0,
            active_task_id=active.id if active else None,
            active_task_title=active.title if active else None,
            last_updated=context.last_updated,
            last_activity=context.current_context.summary,
        )

    def suggest(self, task_list: TaskList) -> Suggestion | None:
        """Suggest continuing the active task, else starting the next one."""
        active_id = self.load().current_context.active_task
        if active_id is not None:
            active = task_list.get_task(active_id)
            if active is not None:
                return Suggestion(
                    task_id=active.id,
                    title=active.title,
                    kind="continue",
                    message=f'Continue working on active task #{active.id} "{active.title}"?',
                )

        upcoming = get_next(task_list.tasks)
        if upcoming is None:
            return None
        return Suggestion(
            task_id=upcoming.id,
            title=upcoming.title,
            kind="start",
            message=f'Start task #{upcoming.id} "{upcoming.title}"?',
        )

    def needs_refresh(self, task_id: int, max_age: timedelta) -> bool:
        """Whether the assistant context should be regenerated for a task.

        True when another task is active or the log is older than max_age.
        """
        try:
            context = self.load()
        except ContextUnavailableError:
            return True

        if context.current_context.active_task != task_id:
            return True

        try:
            last_updated = parse_timestamp(context.last_updated)
        except ValueError:
            return True
        return utc_now() - last_updated > max_age

    def _write(self, context: Context) -> None:
        write_json_atomic(self.path, context.model_dump(mode="json", by_alias=True))


def render_summary(summary: ProjectSummary) -> str:
    """Plain-text digest of a project summary."""
    counts = summary.counts
    lines = [
        f"Project: {summary.project} (v{summary.version})",
        f"Tasks: {summary.total} total, {summary.done} done ({summary.percent_done}%)",
        f"  in progress: {counts.get(TaskStatus.IN_PROGRESS.value, 0)}, "
        f"pending: {counts.get(TaskStatus.PENDING.value, 0)}, "
        f"deferred: {counts.get(TaskStatus.DEFERRED.value, 0)}",
    ]
    if summary.active_task_id is not None:
        lines.append(f"Active task: #{summary.active_task_id} {summary.active_task_title}")
    else:
        lines.append("Active task: none")
    updated = format_timestamp(summary.last_updated)
    try:
        age = max(utc_now() - parse_timestamp(summary.last_updated), timedelta(0))
        updated += f" ({format_age(age)} ago)"
    except ValueError:
        pass
    lines.append(f"Last update: {updated}")
    lines.append(f"Last activity: {summary.last_activity}")
    return "\n".join(lines)
