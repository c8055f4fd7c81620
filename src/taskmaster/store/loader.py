"""Task store - JSON loading, validation and atomic saving."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import portalocker
from pydantic import ValidationError

from taskmaster.errors import EnvironmentFailure
from taskmaster.models.task import DEFAULT_VERSION, Task, TaskList
from taskmaster.util.paths import StoreLocation
from taskmaster.util.retry import retry_transient

logger = logging.getLogger(__name__)


class StoreError(EnvironmentFailure):
    """Base exception for task store errors."""


class StoreNotFoundError(StoreError):
    """tasks.json does not exist."""

    def __init__(self, message: str):
        super().__init__(
            message,
            retriable=False,
            suggested_action="Run 'task-master init' to create the task store",
        )


class StoreCorruptError(StoreError):
    """A store file exists but is not valid JSON or fails validation."""

    def __init__(self, message: str):
        super().__init__(
            message,
            retriable=False,
            suggested_action="Fix the file by hand or restore it from version control",
        )


class StoreLockError(StoreError):
    """Failed to acquire a store lock (another process is writing)."""

    def __init__(self, message: str, timeout: float = 5.0):
        super().__init__(
            message,
            retriable=True,
            suggested_action=f"Retry the command (lock timeout was {timeout}s)",
        )
        self.timeout = timeout


class StoreWriteError(StoreError):
    """Writing or replacing a store file failed."""

    def __init__(self, message: str):
        super().__init__(message, retriable=False, suggested_action="Check disk space and permissions")


@contextmanager
def file_lock(lock_path: Path, timeout: float) -> Iterator[None]:
    """Hold an advisory lock file for the duration of the block.

    Raises:
        StoreLockError: If the lock is not acquired within timeout seconds.
    """
    try:
        with portalocker.Lock(lock_path, timeout=timeout):
            yield
    except portalocker.LockException as e:
        raise StoreLockError(f"Failed to acquire lock {os.path.normpath(lock_path)}: {e}", timeout) from e


def read_json(path: Path) -> Any:
    """Read a JSON document.

    Raises:
        StoreNotFoundError: If the file does not exist.
        StoreCorruptError: If the file is not valid JSON.
    """
    if not path.exists():
        raise StoreNotFoundError(f"File not found: {os.path.normpath(path)}")

    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StoreCorruptError(f"Invalid JSON in {os.path.normpath(path)}: {e}") from e


def write_json_atomic(path: Path, data: Any) -> None:
    """Write data as pretty JSON, replacing the target in one rename.

    A crash leaves either the old or the new file, never a partial one.

    Raises:
        StoreWriteError: If the temp file cannot be written or renamed.
    """
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        retry_transient(lambda: temp_path.replace(path))
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise StoreWriteError(f"Failed to write {os.path.normpath(path)}: {e}") from e


def next_id(tasks: Sequence[Task]) -> int:
    """Return the id for a new task: 1 for an empty list, else max + 1.

    Ids are unique only while a single writer holds the store lock.
    """
    return max((task.id for task in tasks), default=0) + 1


class TaskStore:
    """Load/save access to tasks.json."""

    def __init__(self, location: StoreLocation, lock_timeout: float = 5.0):
        self.location = location
        self.lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self.location.tasks_file

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> TaskList:
        """Load and validate the task list.

        Raises:
            StoreNotFoundError: If tasks.json doesn't exist.
            StoreCorruptError: If tasks.json is not a valid task list.
        """
        raw = read_json(self.path)
        if not isinstance(raw, dict):
            raise StoreCorruptError(f"{os.path.normpath(self.path)} must contain a JSON object")

        try:
            return TaskList.model_validate(raw)
        except ValidationError as e:
            raise StoreCorruptError(f"Task store validation failed: {e}") from e

    def save(self, task_list: TaskList) -> None:
        """Save the task list atomically while holding the store lock.

        Raises:
            StoreLockError: If the lock cannot be acquired.
            StoreWriteError: If the file cannot be written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with file_lock(self.location.tasks_lock, self.lock_timeout):
            self._write(task_list)

    @contextmanager
    def edit(self) -> Iterator[TaskList]:
        """Load, let the caller mutate, then save - all under one lock.

        If the block raises, nothing is written.
        """
        if not self.exists():
            raise StoreNotFoundError(f"File not found: {os.path.normpath(self.path)}")

        with file_lock(self.location.tasks_lock, self.lock_timeout):
            task_list = self.load()
            yield task_list
            self._write(task_list)

    def create(self, project: str, version: str = DEFAULT_VERSION) -> TaskList:
        """Write a fresh, empty task list."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        task_list = TaskList(project=project, version=version, tasks=[])
        self.save(task_list)
        logger.info("Created task store at %s", self.path)
        return task_list

    def _write(self, task_list: TaskList) -> None:
        write_json_atomic(self.path, serialize_task_list(task_list))
        logger.debug("Saved %d tasks to %s", len(task_list.tasks), self.path)


def serialize_task_list(task_list: TaskList) -> dict[str, Any]:
    """Convert a task list to its JSON document form.

    Fields absent from the loaded document stay absent, so saving an
    unmodified list reproduces the original document.
    """
    return task_list.model_dump(mode="json", exclude_unset=True)
