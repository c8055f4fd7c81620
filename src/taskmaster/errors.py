"""Base exception shared by every task-master error."""

from __future__ import annotations

EXIT_USER_ERROR = 1
EXIT_ENVIRONMENT_ERROR = 2


class TaskMasterError(Exception):
    """Base exception for task-master errors."""

    exit_code = EXIT_USER_ERROR

    def __init__(self, message: str, retriable: bool = False, suggested_action: str | None = None):
        """Initialize with retriable flag and suggested action.

        Args:
            message: Error message
            retriable: Whether this error is transient and can be retried
            suggested_action: Suggested action for the user
        """
        super().__init__(message)
        self.message = message
        self.retriable = retriable
        self.suggested_action = suggested_action


class EnvironmentFailure(TaskMasterError):
    """The store or its surroundings are unusable for this command."""

    exit_code = EXIT_ENVIRONMENT_ERROR
