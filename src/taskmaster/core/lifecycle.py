"""Status lifecycle engine - every task transition goes through here.

Each operation writes the task store first and appends to the context
log only after that write succeeded. A failed append is reported as a
warning on the result rather than undoing the store change.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from taskmaster.core.assistant import write_task_context
from taskmaster.core.errors import (
    AlreadyActiveError,
    InvalidInputError,
    InvalidTransitionError,
    NoPendingTaskError,
    SubtaskNotFoundError,
    TaskNotFoundError,
)
from taskmaster.core.ids import parse_task_ref
from taskmaster.core.scheduler import get_current, get_next
from taskmaster.models.context import HistoryAction, HistoryEntry
from taskmaster.models.task import (
    DEFAULT_DESCRIPTION,
    Subtask,
    SubtaskStatus,
    Task,
    TaskDraft,
    TaskList,
    TaskStatus,
)
from taskmaster.store.context_log import ContextLog
from taskmaster.store.loader import StoreError, TaskStore, next_id
from taskmaster.util.config import Settings
from taskmaster.util.paths import StoreLocation
from taskmaster.util.time import now_iso

logger = logging.getLogger(__name__)


class TransitionResult(BaseModel):
    """Outcome of a lifecycle operation."""

    task: Task
    subtask_id: str | None = None
    entries: list[HistoryEntry] = Field(default_factory=list)
    rolled_up: bool = False
    already_done: bool = False
    next_task: Task | None = None
    warnings: list[str] = Field(default_factory=list)


def _require_task(task_list: TaskList, task_id: int) -> Task:
    task = task_list.get_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return task


def _require_subtask(task: Task, subtask_id: str) -> Subtask:
    subtask = task.get_subtask(subtask_id)
    if subtask is None:
        raise SubtaskNotFoundError(subtask_id)
    return subtask


def _status_details(old: TaskStatus, new: TaskStatus) -> dict[str, Any]:
    return {"oldStatus": old.value, "newStatus": new.value}


class LifecycleEngine:
    """Applies status transitions to the task store and records them."""

    def __init__(
        self,
        store: TaskStore,
        log: ContextLog,
        settings: Settings | None = None,
        export_context: bool = True,
    ):
        self.store = store
        self.log = log
        self.settings = settings or Settings()
        self.export_context = export_context

    @classmethod
    def for_location(cls, location: StoreLocation, settings: Settings | None = None) -> LifecycleEngine:
        settings = settings or Settings()
        return cls(
            TaskStore(location, lock_timeout=settings.lock_timeout),
            ContextLog(location, lock_timeout=settings.lock_timeout),
            settings,
        )

    @property
    def location(self) -> StoreLocation:
        return self.store.location

    # Transitions

    def start(self, task_id: int | None = None, summary: str | None = None) -> TransitionResult:
        """Move a pending task to in-progress.

        Without a task id the scheduler's next task is started.

        Raises:
            TaskNotFoundError: If the id is unknown.
            NoPendingTaskError: If no id was given and nothing is pending.
            InvalidTransitionError: If the task is not pending.
            AlreadyActiveError: If another task is in progress.
        """
        with self.store.edit() as task_list:
            if task_id is None:
                task = get_next(task_list.tasks)
                if task is None:
                    raise NoPendingTaskError()
            else:
                task = _require_task(task_list, task_id)

            if task.status != TaskStatus.PENDING:
                raise InvalidTransitionError(task.id, task.status.value, "start")

            current = get_current(task_list.tasks)
            if current is not None:
                raise AlreadyActiveError(current.id, current.title)

            task.status = TaskStatus.IN_PROGRESS
            task.touch()

        result = TransitionResult(task=task)
        self._record(
            result,
            task,
            HistoryAction.START,
            summary or f'Started task "{task.title}"',
            _status_details(TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
        )
        self._export(result, task)
        logger.info("Started task %s", task.id)
        return result

    def complete(self, ref: str | int, summary: str | None = None) -> TransitionResult:
        """Complete a task ("3") or a subtask ("3.2").

        Raises:
            InvalidIdError: If the reference is malformed.
        """
        parsed = parse_task_ref(ref)
        if parsed.subtask_id is not None:
            return self.complete_subtask(parsed.task_id, parsed.subtask_id, summary)
        return self.complete_task(parsed.task_id, summary)

    def complete_task(self, task_id: int, summary: str | None = None) -> TransitionResult:
        """Mark a task and all its subtasks done.

        Completing a task that is already done changes nothing and writes
        no history.

        Raises:
            TaskNotFoundError: If the id is unknown.
        """
        existing = _require_task(self.store.load(), task_id)
        if existing.status == TaskStatus.DONE:
            return TransitionResult(task=existing, already_done=True)

        with self.store.edit() as task_list:
            task = _require_task(task_list, task_id)
            old_status = task.status
            task.status = TaskStatus.DONE
            for subtask in task.subtasks:
                subtask.status = SubtaskStatus.DONE
            task.touch()
            upcoming = get_next(task_list.tasks)
            focus = get_current(task_list.tasks) or upcoming

        if summary is None:
            summary = f'Completed task "{task.title}"'
            if task.subtasks:
                summary += f" and all {len(task.subtasks)} subtasks"

        result = TransitionResult(task=task, next_task=upcoming)
        self._record(
            result,
            task,
            HistoryAction.COMPLETE,
            summary,
            _status_details(old_status, TaskStatus.DONE),
        )
        if focus is not None:
            self._export(result, focus)
        logger.info("Completed task %s", task.id)
        return result

    def complete_subtask(
        self,
        parent_id: int,
        subtask_id: str,
        summary: str | None = None,
    ) -> TransitionResult:
        """Mark one subtask done, rolling the parent up when it was the last.

        Raises:
            TaskNotFoundError: If the parent id is unknown.
            SubtaskNotFoundError: If the parent has no such subtask.
        """
        existing = _require_task(self.store.load(), parent_id)
        if _require_subtask(existing, subtask_id).is_done:
            return TransitionResult(task=existing, subtask_id=subtask_id, already_done=True)

        with self.store.edit() as task_list:
            task = _require_task(task_list, parent_id)
            subtask = _require_subtask(task, subtask_id)
            subtask.status = SubtaskStatus.DONE

            old_status = task.status
            rolled_up = task.all_subtasks_done() and old_status != TaskStatus.DONE
            if rolled_up:
                task.status = TaskStatus.DONE
            task.touch()
            upcoming = get_next(task_list.tasks)
            focus = get_current(task_list.tasks) or upcoming

        result = TransitionResult(
            task=task,
            subtask_id=subtask_id,
            rolled_up=rolled_up,
            next_task=upcoming if rolled_up else None,
        )
        self._record(
            result,
            task,
            HistoryAction.UPDATE,
            summary or f'Completed subtask {subtask_id} "{subtask.title}"',
            {"subtaskId": subtask_id},
        )
        if rolled_up:
            self._record(
                result,
                task,
                HistoryAction.COMPLETE,
                f"All {len(task.subtasks)} subtasks completed",
                _status_details(old_status, TaskStatus.DONE),
            )
            if focus is not None:
                self._export(result, focus)
        else:
            self._export(result, task)

        logger.info("Completed subtask %s (rollup: %s)", subtask_id, rolled_up)
        return result

    def defer(self, task_id: int, summary: str | None = None) -> TransitionResult:
        """Park a task. Deferred tasks are never picked by the scheduler.

        Raises:
            TaskNotFoundError: If the id is unknown.
            InvalidTransitionError: If the status is not in settings.defer_from.
        """
        with self.store.edit() as task_list:
            task = _require_task(task_list, task_id)
            old_status = task.status
            if old_status not in self.settings.defer_from:
                raise InvalidTransitionError(task.id, old_status.value, "defer")
            task.status = TaskStatus.DEFERRED
            task.touch()

        result = TransitionResult(task=task)
        self._record(
            result,
            task,
            HistoryAction.UPDATE,
            summary or f'Deferred task "{task.title}"',
            _status_details(old_status, TaskStatus.DEFERRED),
            release_active=True,
        )
        logger.info("Deferred task %s", task.id)
        return result

    def record_progress(self, task_id: int, summary: str) -> TransitionResult:
        """Add a progress note; a pending task is started first.

        Raises:
            InvalidInputError: If the summary is empty.
            TaskNotFoundError: If the id is unknown.
            AlreadyActiveError: If starting the task would make two active.
        """
        if not summary or not summary.strip():
            raise InvalidInputError("A summary of the work done is required")

        task = _require_task(self.store.load(), task_id)
        if task.status == TaskStatus.PENDING:
            return self.start(task_id, summary)

        result = TransitionResult(task=task)
        self._record(result, task, HistoryAction.UPDATE, summary, {"status": task.status.value})
        if task.status == TaskStatus.IN_PROGRESS:
            self._export(result, task)
        return result

    # Creation

    def create_tasks(self, drafts: Iterable[TaskDraft], priority: int | None = None) -> list[Task]:
        """Append new pending tasks built from drafts.

        Args:
            drafts: Parsed task drafts, created in order.
            priority: Overrides each draft's priority when given.

        Raises:
            InvalidInputError: If a draft has an empty title or bad priority.
        """
        drafts = list(drafts)
        if not drafts:
            raise InvalidInputError("No tasks found in the input")

        created: list[Task] = []
        with self.store.edit() as task_list:
            for draft in drafts:
                task_id = next_id(task_list.tasks)
                stamp = now_iso()
                try:
                    task = Task(
                        id=task_id,
                        title=draft.title.strip(),
                        description=draft.description.strip() or DEFAULT_DESCRIPTION,
                        status=TaskStatus.PENDING,
                        priority=priority if priority is not None else draft.priority,
                        subtasks=[
                            Subtask(
                                id=f"{task_id}.{ordinal}",
                                title=title.strip(),
                                status=SubtaskStatus.PENDING,
                            )
                            for ordinal, title in enumerate(draft.subtasks, start=1)
                        ],
                        created_at=stamp,
                        updated_at=stamp,
                    )
                except ValidationError as e:
                    raise InvalidInputError(f"Invalid task '{draft.title}': {e}") from e
                task_list.tasks.append(task)
                created.append(task)

        logger.info("Created %d task(s)", len(created))
        return created

    # Context export

    def export_task_context(self, task: Task) -> bool:
        """Write the assistant context file for a task."""
        return write_task_context(self.location, task, self._history_or_empty(task.id))

    def _export(self, result: TransitionResult, task: Task) -> None:
        if not self.export_context:
            return
        if not self.export_task_context(task):
            result.warnings.append(f"Assistant context file not updated: {self.location.assistant_file}")

    def _history_or_empty(self, task_id: int) -> list[HistoryEntry]:
        try:
            return list(self.log.history_for(task_id))
        except StoreError as e:
            logger.warning("History unavailable for task %s: %s", task_id, e)
            return []

    def _record(
        self,
        result: TransitionResult,
        task: Task,
        action: HistoryAction,
        summary: str,
        details: dict[str, Any],
        release_active: bool = False,
    ) -> None:
        try:
            entry = self.log.append(
                task.id,
                task.title,
                action,
                summary,
                details,
                release_active=release_active,
            )
        except StoreError as e:
            message = f"Task {task.id} was saved but its history was not recorded: {e}"
            logger.warning(message)
            result.warnings.append(message)
            return
        result.entries.append(entry)
