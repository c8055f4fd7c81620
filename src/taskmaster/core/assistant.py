"""Assistant context export.

Renders the active task as markdown for an AI coding assistant to read.
The file is derived output: it is rewritten on demand and never parsed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from taskmaster.models.context import HistoryAction, HistoryEntry
from taskmaster.models.task import Task, TaskStatus
from taskmaster.util.paths import StoreLocation
from taskmaster.util.time import format_timestamp

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    TaskStatus.PENDING: "Pending",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.DONE: "Done",
    TaskStatus.DEFERRED: "Deferred",
}

ACTION_LABELS = {
    HistoryAction.START: "Started",
    HistoryAction.UPDATE: "Update",
    HistoryAction.COMPLETE: "Completed",
}


def render_task_context(task: Task, history: Iterable[HistoryEntry] = ()) -> str:
    lines = [
        "<task-context>",
        f"# Task #{task.id}: {task.title}",
        "",
        f"Status: {STATUS_LABELS[task.status]}",
        f"Priority: {task.priority}",
        "",
        "## Description",
        task.description or "No description",
        "",
    ]

    if task.subtasks:
        lines.append("## Subtasks")
        for subtask in task.subtasks:
            mark = "x" if subtask.is_done else " "
            lines.append(f"- [{mark}] {subtask.id} {subtask.title}")
        lines.append("")

    entries = list(history)
    lines.append("## History")
    if entries:
        for entry in entries:
            label = ACTION_LABELS.get(entry.action, entry.action.value)
            lines.append(f"- {format_timestamp(entry.timestamp)} {label}: {entry.summary}")
    else:
        lines.append("No history yet.")
    lines.append("</task-context>")

    return "\n".join(lines) + "\n"


def write_task_context(
    location: StoreLocation,
    task: Task,
    history: Iterable[HistoryEntry] = (),
) -> bool:
    """Write the assistant context file for a task.

    Returns False if the file could not be written; the failure is logged
    and never interrupts the calling command.
    """
    content = render_task_context(task, history)
    try:
        location.assistant_file.parent.mkdir(parents=True, exist_ok=True)
        location.assistant_file.write_text(content, encoding="utf-8")
    except OSError as e:
        logger.warning("Could not write assistant context %s: %s", location.assistant_file, e)
        return False

    logger.debug("Wrote assistant context for task %s", task.id)
    return True
