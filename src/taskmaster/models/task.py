"""Task store models - tasks, subtasks and the root document."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from taskmaster.util.time import now_iso

DEFAULT_DESCRIPTION = "no description"
DEFAULT_VERSION = "1.0.0"


class TaskStatus(str, Enum):
    """Lifecycle state of a top-level task."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"


class SubtaskStatus(str, Enum):
    """Subtasks are either open or finished."""

    PENDING = "pending"
    DONE = "done"


class Priority(int, Enum):
    HIGH = 1
    MEDIUM = 2
    LOW = 3


class Subtask(BaseModel):
    """A child unit of work, identified as "<parentId>.<ordinal>"."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(description="Composite id, e.g. '2.1'")
    title: str = Field(description="Subtask title")
    status: SubtaskStatus = Field(default=SubtaskStatus.PENDING)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate the "<parentId>.<ordinal>" shape."""
        parent, _, ordinal = v.partition(".")
        if not (parent.isdigit() and ordinal.isdigit()):
            raise ValueError(f"Invalid subtask id: '{v}'")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Subtask title cannot be empty")
        return v

    @property
    def ordinal(self) -> int:
        return int(self.id.rsplit(".", 1)[-1])

    @property
    def is_done(self) -> bool:
        return self.status == SubtaskStatus.DONE


class Task(BaseModel):
    """A top-level task in the store.

    id, title, status and priority are required in the document; the
    other fields fall back to defaults in memory only.
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: int = Field(gt=0, description="Unique positive task id")
    title: str = Field(description="Short task title")
    description: str = Field(default=DEFAULT_DESCRIPTION, description="Free text description")
    status: TaskStatus = Field(description="Lifecycle state")
    priority: int = Field(ge=1, le=3, description="1 = highest")
    subtasks: list[Subtask] = Field(default_factory=list)
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Task title cannot be empty")
        return v

    def get_subtask(self, subtask_id: str) -> Subtask | None:
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None

    def all_subtasks_done(self) -> bool:
        """True when the task has subtasks and every one of them is done."""
        return bool(self.subtasks) and all(st.is_done for st in self.subtasks)

    def subtask_progress(self) -> tuple[int, int]:
        """Return (done, total) subtask counts."""
        return sum(1 for st in self.subtasks if st.is_done), len(self.subtasks)

    def touch(self) -> None:
        self.updated_at = now_iso()


class TaskList(BaseModel):
    """The tasks.json root document."""

    model_config = ConfigDict(extra="allow")

    project: str = Field(description="Project display name")
    version: str = Field(default=DEFAULT_VERSION, description="Semantic version string")
    tasks: list[Task] = Field(description="Ordered task list")

    @model_validator(mode="after")
    def validate_unique_ids(self) -> TaskList:
        seen: set[int] = set()
        for task in self.tasks:
            if task.id in seen:
                raise ValueError(f"Duplicate task id: {task.id}")
            seen.add(task.id)
        return self

    def get_task(self, task_id: int) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def count_by_status(self) -> dict[TaskStatus, int]:
        counts = {status: 0 for status in TaskStatus}
        for task in self.tasks:
            counts[task.status] += 1
        return counts


class TaskDraft(BaseModel):
    """A task parsed from free text, before it has an id."""

    title: str
    description: str = DEFAULT_DESCRIPTION
    priority: int = Field(default=Priority.MEDIUM.value, ge=1, le=3)
    subtasks: list[str] = Field(default_factory=list)
