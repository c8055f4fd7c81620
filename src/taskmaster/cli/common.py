"""Helpers shared by the command modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, NoReturn

import typer
from pydantic import BaseModel
from rich.markup import escape

from taskmaster.core.lifecycle import LifecycleEngine
from taskmaster.errors import TaskMasterError
from taskmaster.models.envelope import NEXT_ACTION_INIT, Envelope, NextAction
from taskmaster.models.task import Task, TaskStatus
from taskmaster.store.loader import StoreNotFoundError
from taskmaster.util.config import Settings, load_settings
from taskmaster.util.output import console, print_json
from taskmaster.util.paths import StoreLocation, StoreMode, resolve_location

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    TaskStatus.PENDING: "white",
    TaskStatus.IN_PROGRESS: "cyan",
    TaskStatus.DONE: "green",
    TaskStatus.DEFERRED: "yellow",
}

STATUS_ICONS = {
    TaskStatus.PENDING: "○",
    TaskStatus.IN_PROGRESS: "◐",
    TaskStatus.DONE: "●",
    TaskStatus.DEFERRED: "◌",
}


class CliState(BaseModel):
    """Global options captured by the root callback."""

    tasks_dir: Path | None = None
    tasks_file: Path | None = None
    mode: StoreMode | None = None


def get_location(ctx: typer.Context, for_init: bool = False) -> StoreLocation:
    state = ctx.obj if isinstance(ctx.obj, CliState) else CliState()
    return resolve_location(state.tasks_dir, state.tasks_file, mode=state.mode, for_init=for_init)


def get_settings(location: StoreLocation, json_output: bool) -> Settings:
    try:
        return load_settings(location)
    except TaskMasterError as e:
        fail(e, json_output)


def get_engine(ctx: typer.Context, json_output: bool) -> LifecycleEngine:
    location = get_location(ctx)
    return LifecycleEngine.for_location(location, get_settings(location, json_output))


def fail(
    error: TaskMasterError,
    json_output: bool,
    next_actions: list[NextAction] | None = None,
) -> NoReturn:
    """Report an error and exit with its exit code."""
    if next_actions is None and isinstance(error, StoreNotFoundError):
        next_actions = [NEXT_ACTION_INIT]

    logger.debug("Command failed: %s", error.message)
    if json_output:
        print_json(
            Envelope.failure(
                error.message,
                error_code=type(error).__name__,
                next_actions=next_actions,
            ).model_dump()
        )
    else:
        console.print(f"[error]{escape(error.message)}[/error]")
        if error.suggested_action:
            console.print(f"[muted]{escape(error.suggested_action)}[/muted]")
    raise typer.Exit(error.exit_code)


def emit(
    data: Any,
    json_output: bool,
    next_actions: list[NextAction] | None = None,
    warnings: list[str] | None = None,
) -> bool:
    """Print the JSON envelope when requested.

    Returns True if JSON was printed, so callers can skip rich output.
    Warnings are always shown in rich mode.
    """
    if json_output:
        print_json(Envelope.success(data, next_actions=next_actions, warnings=warnings).model_dump())
        return True

    print_warnings(warnings or [])
    return False


def print_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        console.print(f"[warning]Warning: {escape(warning)}[/warning]")


def task_summary(task: Task) -> dict[str, Any]:
    """Compact task form used in list output."""
    done, total = task.subtask_progress()
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status.value,
        "priority": task.priority,
        "subtasks_done": done,
        "subtasks_total": total,
    }


def print_task_line(task: Task, indent: str = "  ") -> None:
    color = STATUS_COLORS.get(task.status, "white")
    icon = STATUS_ICONS.get(task.status, " ")
    done, total = task.subtask_progress()
    subtasks = f" [muted]({done}/{total})[/muted]" if total else ""
    console.print(
        f"{indent}[{color}]{icon}[/{color}] [task_id]#{task.id}[/task_id] {escape(task.title)}"
        f" [muted]P{task.priority}[/muted]{subtasks}"
    )


def print_task_detail(task: Task) -> None:
    color = STATUS_COLORS.get(task.status, "white")
    console.print()
    console.print(f"[task_id]#{task.id}[/task_id] [bold]{escape(task.title)}[/bold]")
    console.print(f"Status: [{color}]{task.status.value}[/{color}]  Priority: {task.priority}")
    console.print()
    console.print(escape(task.description))
    if task.subtasks:
        console.print()
        console.print("[info]Subtasks:[/info]")
        for subtask in task.subtasks:
            mark = "[success]✓[/success]" if subtask.is_done else "[muted]·[/muted]"
            console.print(f"  {mark} {subtask.id} {escape(subtask.title)}")
    console.print()


def show_explain(explanation: dict[str, Any], json_output: bool) -> None:
    """Print an --explain payload."""
    if json_output:
        print_json(explanation)
        return

    console.print()
    console.print(f"[info]{explanation['command']}[/info]")
    console.print()
    console.print(explanation["purpose"])
    for heading in ("options", "notes"):
        items = explanation.get(heading)
        if not items:
            continue
        console.print()
        console.print(f"[muted]{heading.capitalize()}:[/muted]")
        if isinstance(items, dict):
            for name, text in items.items():
                console.print(f"  {name}: {text}")
        else:
            for text in items:
                console.print(f"  - {text}")
    console.print()
