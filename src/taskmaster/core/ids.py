"""Parsing of task and subtask references typed by users."""

from __future__ import annotations

import re
from typing import NamedTuple

from taskmaster.core.errors import InvalidIdError

TASK_REF_PATTERN = re.compile(r"^#?(\d+)(?:\.(\d+))?$")


class TaskRef(NamedTuple):
    task_id: int
    subtask_id: str | None = None

    @property
    def is_subtask(self) -> bool:
        return self.subtask_id is not None

    def __str__(self) -> str:
        return self.subtask_id or str(self.task_id)


def parse_task_ref(token: str | int) -> TaskRef:
    """Parse "3", "#3" or "3.2" into a TaskRef.

    Raises:
        InvalidIdError: If the token is not a positive task or subtask id.
    """
    text = str(token).strip()
    match = TASK_REF_PATTERN.match(text)
    if not match:
        raise InvalidIdError(text)

    task_id = int(match.group(1))
    if task_id <= 0:
        raise InvalidIdError(text)

    if match.group(2) is None:
        return TaskRef(task_id)

    ordinal = int(match.group(2))
    if ordinal <= 0:
        raise InvalidIdError(text)
    return TaskRef(task_id, f"{task_id}.{ordinal}")


def parse_task_id(token: str | int) -> int:
    """Parse a top-level task id, rejecting subtask references.

    Raises:
        InvalidIdError: If the token is not a plain task id.
    """
    ref = parse_task_ref(token)
    if ref.is_subtask:
        raise InvalidIdError(str(token))
    return ref.task_id
