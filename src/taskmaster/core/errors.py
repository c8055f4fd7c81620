"""User-facing lifecycle errors.

These are recoverable: the CLI reports them and exits with status 1
without touching the store.
"""

from __future__ import annotations

from taskmaster.errors import TaskMasterError


class LifecycleError(TaskMasterError):
    """Base exception for rejected task operations."""


class InvalidIdError(LifecycleError):
    def __init__(self, token: str):
        super().__init__(
            f"Invalid task id: '{token}'",
            suggested_action="Use a task id like 3 or a subtask id like 3.2",
        )
        self.token = token


class TaskNotFoundError(LifecycleError):
    def __init__(self, task_id: int):
        super().__init__(
            f"Task {task_id} not found",
            suggested_action="Run 'task-master list' to see task ids",
        )
        self.task_id = task_id


class SubtaskNotFoundError(LifecycleError):
    def __init__(self, subtask_id: str):
        super().__init__(
            f"Subtask {subtask_id} not found",
            suggested_action="Run 'task-master show <id>' to see subtask ids",
        )
        self.subtask_id = subtask_id


class AlreadyActiveError(LifecycleError):
    """Another task is already in progress."""

    def __init__(self, active_id: int, active_title: str):
        super().__init__(
            f'Task #{active_id} "{active_title}" is already in progress. Complete it first.',
            suggested_action=f"task-master complete {active_id}",
        )
        self.active_id = active_id


class InvalidTransitionError(LifecycleError):
    def __init__(self, task_id: int, current: str, operation: str):
        super().__init__(f"Cannot {operation} task {task_id}: status is '{current}'")
        self.task_id = task_id
        self.current = current


class InvalidInputError(LifecycleError):
    """A task could not be created or updated from the given input."""


class NoPendingTaskError(LifecycleError):
    def __init__(self):
        super().__init__(
            "No pending tasks. Everything is done, deferred or in progress.",
            suggested_action="task-master generate",
        )
