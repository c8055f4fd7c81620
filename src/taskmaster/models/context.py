"""Context log models - history entries and the current-context singleton.

The context document is written in camelCase to stay readable by the
assistant tooling that consumes it; Python code uses snake_case aliases.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from taskmaster.models.task import TaskStatus
from taskmaster.util.time import now_iso

INITIAL_PROJECT_STATE = "Project initialized"
INITIAL_SUMMARY = "Project was initialized"


class HistoryAction(str, Enum):
    START = "start"
    UPDATE = "update"
    COMPLETE = "complete"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class HistoryEntry(_CamelModel):
    """One immutable audit record of a task transition or note."""

    task_id: int = Field(description="Task the entry belongs to")
    task_title: str = Field(description="Task title when the entry was written")
    action: HistoryAction
    summary: str = ""
    timestamp: str = Field(default_factory=now_iso)
    details: dict[str, Any] = Field(default_factory=dict)


class CurrentContext(_CamelModel):
    active_task: int | None = None
    summary: str = INITIAL_SUMMARY


class Context(_CamelModel):
    """The context.json document."""

    last_updated: str = Field(default_factory=now_iso)
    project_state: str = INITIAL_PROJECT_STATE
    task_history: list[HistoryEntry] = Field(default_factory=list)
    current_context: CurrentContext = Field(default_factory=CurrentContext)


class TaskHistory:
    """Restartable view over the history entries of one task.

    Iterating filters a snapshot of the log lazily; each new iteration
    starts from the beginning.
    """

    def __init__(self, task_id: int, entries: list[HistoryEntry]):
        self.task_id = task_id
        self._entries = entries

    def __iter__(self) -> Iterator[HistoryEntry]:
        return (entry for entry in self._entries if entry.task_id == self.task_id)

    def __bool__(self) -> bool:
        return any(True for _ in self)


class ProjectSummary(BaseModel):
    """Counts and digest derived from the store and the context log."""

    project: str
    version: str
    total: int
    counts: dict[str, int]
    percent_done: int
    active_task_id: int | None = None
    active_task_title: str | None = None
    last_updated: str
    last_activity: str

    @property
    def done(self) -> int:
        return self.counts.get(TaskStatus.DONE.value, 0)


class Suggestion(BaseModel):
    """What to work on next: continue the active task or start a new one."""

    task_id: int
    title: str
    kind: str = Field(description="'continue' or 'start'")
    message: str
