"""Priority scheduler - pure functions over a task list snapshot."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from taskmaster.models.task import Task, TaskStatus


def get_next(tasks: Sequence[Task]) -> Task | None:
    """Return the pending task with the best (lowest) priority.

    Ties keep list order. Returns None when nothing is pending.
    """
    pending = [task for task in tasks if task.status == TaskStatus.PENDING]
    if not pending:
        return None
    return sorted(pending, key=lambda t: t.priority)[0]


def active_tasks(tasks: Sequence[Task]) -> list[Task]:
    return [task for task in tasks if task.status == TaskStatus.IN_PROGRESS]


def get_current(tasks: Sequence[Task]) -> Task | None:
    """Return the in-progress task, or the first of several.

    More than one active task is an inconsistency; callers that care
    should check active_tasks() and report it.
    """
    active = active_tasks(tasks)
    return active[0] if active else None


class Progress(BaseModel):
    """Overall completion figures for `next --progress`."""

    total: int
    done: int
    in_progress: int
    pending: int
    deferred: int
    percent_done: float
    current_task_id: int | None = None
    current_subtasks_done: int = 0
    current_subtasks_total: int = 0
    active_task_ids: list[int] = Field(default_factory=list)


def progress(tasks: Sequence[Task]) -> Progress:
    counts = {status: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status] += 1

    total = len(tasks)
    active = active_tasks(tasks)
    current = active[0] if active else None
    subtasks_done, subtasks_total = current.subtask_progress() if current else (0, 0)

    return Progress(
        total=total,
        done=counts[TaskStatus.DONE],
        in_progress=counts[TaskStatus.IN_PROGRESS],
        pending=counts[TaskStatus.PENDING],
        deferred=counts[TaskStatus.DEFERRED],
        percent_done=round(counts[TaskStatus.DONE] * 100 / total, 1) if total else 0.0,
        current_task_id=current.id if current else None,
        current_subtasks_done=subtasks_done,
        current_subtasks_total=subtasks_total,
        active_task_ids=[task.id for task in active],
    )
