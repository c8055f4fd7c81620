"""task-master task commands - listing, scheduling and status changes."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import typer
from rich.markup import escape

from taskmaster.cli.common import (
    emit,
    fail,
    get_engine,
    print_task_detail,
    print_task_line,
    print_warnings,
    show_explain,
    task_summary,
)
from taskmaster.core.errors import InvalidInputError, TaskNotFoundError
from taskmaster.core.ids import parse_task_id, parse_task_ref
from taskmaster.core.lifecycle import LifecycleEngine, TransitionResult
from taskmaster.core.plan import parse_batch, parse_plan, parse_task_block, starter_plan
from taskmaster.core.scheduler import active_tasks, get_next, progress
from taskmaster.errors import TaskMasterError
from taskmaster.models.envelope import NEXT_ACTION_GENERATE, NEXT_ACTION_LIST, NextAction
from taskmaster.models.task import Task, TaskList, TaskStatus
from taskmaster.util.output import console
from taskmaster.util.time import format_timestamp


def _load(engine: LifecycleEngine, json_output: bool) -> TaskList:
    try:
        return engine.store.load()
    except TaskMasterError as e:
        fail(e, json_output)


def _multiple_active_warning(task_list: TaskList) -> list[str]:
    active = active_tasks(task_list.tasks)
    if len(active) <= 1:
        return []
    ids = ", ".join(f"#{task.id}" for task in active)
    return [f"More than one task is in progress ({ids}); complete or defer all but one"]


def _transition_data(result: TransitionResult) -> dict[str, Any]:
    return {
        "task": result.task.model_dump(mode="json"),
        "subtask_id": result.subtask_id,
        "rolled_up": result.rolled_up,
        "already_done": result.already_done,
        "history": [entry.model_dump(mode="json", by_alias=True) for entry in result.entries],
        "next_task": result.next_task.model_dump(mode="json") if result.next_task else None,
    }


def _start_action(task: Task) -> NextAction:
    return NextAction(
        intent="task.start",
        cmd=f"task-master start {task.id}",
        description=f"Start #{task.id} {task.title}",
    )


def _complete_action(task: Task) -> NextAction:
    return NextAction(
        intent="task.complete",
        cmd=f"task-master complete {task.id}",
        description=f"Complete #{task.id} when finished",
    )


def _print_subtasks(task: Task) -> None:
    if not task.subtasks:
        return
    console.print()
    console.print("[info]Subtasks:[/info]")
    for subtask in task.subtasks:
        mark = "[success]✓[/success]" if subtask.is_done else "[muted]○[/muted]"
        console.print(f"  {mark} {subtask.id} {escape(subtask.title)}")


def task_list(
    ctx: typer.Context,
    status_filter: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Filter by status (pending, in-progress, done, deferred).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
    explain: bool = typer.Option(
        False,
        "--explain",
        help="Show what this command does.",
    ),
) -> None:
    """List tasks in store order."""
    if explain:
        show_explain(_EXPLAIN_LIST, json_output)
        return

    engine = get_engine(ctx, json_output)
    task_list = _load(engine, json_output)
    tasks = task_list.tasks

    if status_filter:
        try:
            wanted = TaskStatus(status_filter.lower())
        except ValueError:
            fail(InvalidInputError(f"Invalid status: {status_filter}"), json_output)
        tasks = [t for t in tasks if t.status == wanted]

    warnings = _multiple_active_warning(task_list)
    result = {
        "project": task_list.project,
        "tasks": [task_summary(t) for t in tasks],
        "count": len(tasks),
    }
    next_actions = [] if tasks else [NEXT_ACTION_GENERATE]

    if emit(result, json_output, next_actions=next_actions, warnings=warnings):
        return

    console.print()
    if not tasks:
        console.print("[muted]No tasks found.[/muted]")
        console.print("Run [command]task-master generate[/command] to add some.")
    else:
        console.print(f"[bold]{escape(task_list.project)}[/bold] [muted]({len(tasks)} tasks)[/muted]")
        console.print()
        for task in tasks:
            print_task_line(task)
    console.print()


def task_show(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID to show."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
    explain: bool = typer.Option(
        False,
        "--explain",
        help="Show what this command does.",
    ),
) -> None:
    """Show a task with its subtasks and history."""
    if explain:
        show_explain(_EXPLAIN_SHOW, json_output)
        return

    engine = get_engine(ctx, json_output)
    try:
        ref = parse_task_ref(task_id)
        task_list = engine.store.load()
    except TaskMasterError as e:
        fail(e, json_output)

    task = task_list.get_task(ref.task_id)
    if task is None:
        fail(TaskNotFoundError(ref.task_id), json_output)

    warnings: list[str] = []
    try:
        history = list(engine.log.history_for(task.id))
    except TaskMasterError as e:
        history = []
        warnings.append(f"History unavailable: {e.message}")

    result = {
        "task": task.model_dump(mode="json"),
        "history": [entry.model_dump(mode="json", by_alias=True) for entry in history],
    }
    next_actions = []
    if task.status == TaskStatus.PENDING:
        next_actions.append(_start_action(task))
    elif task.status == TaskStatus.IN_PROGRESS:
        next_actions.append(_complete_action(task))

    if emit(result, json_output, next_actions=next_actions, warnings=warnings):
        return

    print_task_detail(task)
    if history:
        console.print("[info]History:[/info]")
        for entry in history:
            console.print(
                f"  [muted]{format_timestamp(entry.timestamp)}[/muted] {entry.action.value}: "
                f"{escape(entry.summary)}"
            )
        console.print()


def _print_started(result: TransitionResult) -> None:
    task = result.task
    console.print(f"[success]Started #{task.id} {escape(task.title)}[/success]")
    _print_subtasks(task)
    console.print()
    console.print("[muted]Assistant context updated.[/muted]")
    console.print(f"Run [command]task-master complete {task.id}[/command] when finished.")


def _print_progress(tasks: list[Task]) -> None:
    stats = progress(tasks)
    console.print()
    console.print("[bold]Progress[/bold]")
    console.print(f"  Total:       {stats.total}")
    console.print(f"  [success]Done:        {stats.done} ({stats.percent_done:.1f}%)[/success]")
    console.print(f"  [info]In progress: {stats.in_progress}[/info]")
    console.print(f"  Pending:     {stats.pending}")
    console.print(f"  [warning]Deferred:    {stats.deferred}[/warning]")
    if stats.current_task_id is not None:
        console.print()
        console.print(f"[info]Current task:[/info] [task_id]#{stats.current_task_id}[/task_id]")
        if stats.current_subtasks_total:
            console.print(
                f"  Subtasks: {stats.current_subtasks_done}/{stats.current_subtasks_total}"
            )
    console.print()


def task_next(
    ctx: typer.Context,
    start: bool = typer.Option(
        False,
        "--start",
        help="Start the next task right away.",
    ),
    show_progress: bool = typer.Option(
        False,
        "--progress",
        help="Show overall progress instead of the next task.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
    explain: bool = typer.Option(
        False,
        "--explain",
        help="Show what this command does.",
    ),
) -> None:
    """Show the next task to work on.

    The next task is the pending task with the highest priority; ties go
    to the task listed first.
    """
    if explain:
        show_explain(_EXPLAIN_NEXT, json_output)
        return

    engine = get_engine(ctx, json_output)
    task_list = _load(engine, json_output)
    warnings = _multiple_active_warning(task_list)

    if show_progress:
        stats = progress(task_list.tasks)
        if stats.current_task_id is not None:
            current = task_list.get_task(stats.current_task_id)
            if current is not None and not engine.export_task_context(current):
                warnings.append("Assistant context file not updated")
        if emit(stats.model_dump(), json_output, warnings=warnings):
            return
        _print_progress(task_list.tasks)
        return

    if start:
        try:
            result = engine.start()
        except TaskMasterError as e:
            fail(e, json_output)
        warnings.extend(result.warnings)
        if emit(
            _transition_data(result),
            json_output,
            next_actions=[_complete_action(result.task)],
            warnings=warnings,
        ):
            return
        _print_started(result)
        return

    upcoming = get_next(task_list.tasks)
    if upcoming is None:
        if emit({"task": None}, json_output, next_actions=[NEXT_ACTION_GENERATE], warnings=warnings):
            return
        console.print("[warning]No pending tasks. Everything is done, deferred or in progress.[/warning]")
        return

    if not engine.export_task_context(upcoming):
        warnings.append("Assistant context file not updated")

    if emit(
        {"task": upcoming.model_dump(mode="json")},
        json_output,
        next_actions=[_start_action(upcoming)],
        warnings=warnings,
    ):
        return

    console.print()
    console.print("[info]Next task:[/info]")
    print_task_detail(upcoming)
    console.print("Run [command]task-master next --start[/command] to begin.")
    console.print()


def task_start(
    ctx: typer.Context,
    task_id: str | None = typer.Argument(
        None,
        help="Task ID to start. Defaults to the next task by priority.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
    explain: bool = typer.Option(
        False,
        "--explain",
        help="Show what this command does.",
    ),
) -> None:
    """Start working on a pending task."""
    if explain:
        show_explain(_EXPLAIN_START, json_output)
        return

    engine = get_engine(ctx, json_output)
    try:
        result = engine.start(parse_task_id(task_id) if task_id else None)
    except TaskMasterError as e:
        fail(e, json_output)

    if emit(
        _transition_data(result),
        json_output,
        next_actions=[_complete_action(result.task)],
        warnings=result.warnings,
    ):
        return
    _print_started(result)


def task_complete(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID (3) or subtask ID (3.2) to complete."),
    summary: str | None = typer.Option(
        None,
        "--summary",
        "-s",
        help="What was done. Recorded in the history.",
    ),
    interactive: bool = typer.Option(
        False,
        "--interactive",
        "-i",
        help="Ask for a summary and offer to start the next task.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
    explain: bool = typer.Option(
        False,
        "--explain",
        help="Show what this command does.",
    ),
) -> None:
    """Mark a task or subtask as done.

    Completing a task also completes all of its subtasks. Completing the
    last open subtask completes its parent.
    """
    if explain:
        show_explain(_EXPLAIN_COMPLETE, json_output)
        return

    interactive = interactive and not json_output
    engine = get_engine(ctx, json_output)

    if interactive and summary is None:
        summary = typer.prompt("Summary of the result", default="", show_default=False).strip() or None

    try:
        result = engine.complete(task_id, summary)
    except TaskMasterError as e:
        fail(e, json_output)

    next_actions = [_start_action(result.next_task)] if result.next_task else [NEXT_ACTION_LIST]
    if emit(_transition_data(result), json_output, next_actions=next_actions, warnings=result.warnings):
        return

    task = result.task
    if result.already_done:
        target = result.subtask_id or f"#{task.id}"
        console.print(f"[muted]{target} is already done.[/muted]")
        return

    if result.subtask_id:
        done, total = task.subtask_progress()
        console.print(f"[success]Completed subtask {result.subtask_id}[/success] [muted]({done}/{total})[/muted]")
        if result.rolled_up:
            console.print(f"[success]All subtasks done: #{task.id} {escape(task.title)} completed[/success]")
    else:
        console.print(f"[success]Completed #{task.id} {escape(task.title)}[/success]")

    upcoming = result.next_task
    if upcoming is None:
        return

    console.print()
    console.print(f"[info]Next task:[/info] [task_id]#{upcoming.id}[/task_id] {escape(upcoming.title)} [muted]P{upcoming.priority}[/muted]")

    if interactive and typer.confirm("Start the next task?", default=False):
        try:
            started = engine.start(upcoming.id)
        except TaskMasterError as e:
            fail(e, json_output)
        print_warnings(started.warnings)
        _print_started(started)
    else:
        console.print(f"Run [command]task-master start {upcoming.id}[/command] to begin.")


def task_defer(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID to defer."),
    summary: str | None = typer.Option(
        None,
        "--summary",
        "-s",
        help="Why the task is being deferred.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
    explain: bool = typer.Option(
        False,
        "--explain",
        help="Show what this command does.",
    ),
) -> None:
    """Defer a task. Deferred tasks are skipped by next."""
    if explain:
        show_explain(_EXPLAIN_DEFER, json_output)
        return

    engine = get_engine(ctx, json_output)
    try:
        result = engine.defer(parse_task_id(task_id), summary)
    except TaskMasterError as e:
        fail(e, json_output)

    if emit(_transition_data(result), json_output, warnings=result.warnings):
        return
    console.print(f"[warning]Deferred #{result.task.id} {escape(result.task.title)}[/warning]")


def _read_input(text: str | None, file: Path | None) -> str:
    if text is not None:
        return text
    if file is not None:
        try:
            return file.read_text(encoding="utf-8")
        except OSError as e:
            raise InvalidInputError(f"Cannot read {file}: {e}") from e
    if sys.stdin.isatty():
        console.print("[info]Describe the task(s); finish with Ctrl-D (Ctrl-Z on Windows):[/info]")
    return sys.stdin.read()


def task_generate(
    ctx: typer.Context,
    text: str | None = typer.Option(
        None,
        "--text",
        "-t",
        help="Task description. Read from stdin when neither --text nor --file is given.",
    ),
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Read the description from a file.",
    ),
    batch: bool = typer.Option(
        False,
        "--batch",
        "-b",
        help="Create several tasks separated by '###'.",
    ),
    plan: bool = typer.Option(
        False,
        "--plan",
        help="Create one task per paragraph of a free-form plan.",
    ),
    starter: bool = typer.Option(
        False,
        "--starter",
        help="Create the default project skeleton.",
    ),
    priority: int | None = typer.Option(
        None,
        "--priority",
        "-p",
        min=1,
        max=3,
        help="Priority for every created task (1 = highest).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
    explain: bool = typer.Option(
        False,
        "--explain",
        help="Show what this command does.",
    ),
) -> None:
    """Create tasks from a text description.

    The first line is the title, lines starting with '-', '*' or '1.'
    become subtasks and a tag like [P:1] sets the priority.
    """
    if explain:
        show_explain(_EXPLAIN_GENERATE, json_output)
        return

    engine = get_engine(ctx, json_output)
    default_priority = engine.settings.default_priority

    try:
        if batch and plan:
            raise InvalidInputError("Use either --batch or --plan, not both")
        if starter:
            drafts = starter_plan()
        else:
            source = _read_input(text, file)
            if plan:
                drafts = parse_plan(source) or starter_plan()
            elif batch:
                drafts = parse_batch(source, default_priority=default_priority)
            else:
                draft = parse_task_block(source, default_priority=default_priority)
                drafts = [draft] if draft else []
        created = engine.create_tasks(drafts, priority)
    except TaskMasterError as e:
        fail(e, json_output)

    result = {
        "created": [task.model_dump(mode="json") for task in created],
        "count": len(created),
    }
    if emit(result, json_output, next_actions=[NEXT_ACTION_LIST]):
        return

    console.print()
    console.print(f"[success]Created {len(created)} task(s)[/success]")
    for task in created:
        print_task_line(task)
        for subtask in task.subtasks:
            console.print(f"      [muted]{subtask.id}[/muted] {escape(subtask.title)}")
    console.print()


_EXPLAIN_LIST = {
    "command": "task-master list",
    "purpose": "List all tasks with status, priority and subtask progress.",
    "options": {"--status": "Only show tasks with this status"},
}

_EXPLAIN_SHOW = {
    "command": "task-master show <id>",
    "purpose": "Show one task with its description, subtasks and history.",
    "notes": ["A subtask id like 3.2 shows its parent task"],
}

_EXPLAIN_NEXT = {
    "command": "task-master next",
    "purpose": "Show the pending task with the highest priority.",
    "options": {
        "--start": "Start it immediately",
        "--progress": "Show counts by status and the current task instead",
    },
    "notes": [
        "Priority 1 is the highest; ties go to the task listed first",
        "Deferred tasks are never suggested",
        "The assistant context file is refreshed for the shown task",
    ],
}

_EXPLAIN_START = {
    "command": "task-master start [id]",
    "purpose": "Move a pending task to in-progress.",
    "notes": [
        "Only one task can be in progress at a time",
        "Without an id the next task by priority is started",
    ],
}

_EXPLAIN_COMPLETE = {
    "command": "task-master complete <id>",
    "purpose": "Mark a task or subtask as done and record it in the history.",
    "options": {
        "--summary": "Describe what was done",
        "--interactive": "Prompt for a summary and offer to start the next task",
    },
    "notes": [
        "Completing a task completes all its subtasks",
        "Completing the last subtask completes the parent task",
        "Completing a task that is already done changes nothing",
    ],
}

_EXPLAIN_DEFER = {
    "command": "task-master defer <id>",
    "purpose": "Park a task so that next no longer suggests it.",
    "notes": ["Deferred tasks stay deferred until completed"],
}

_EXPLAIN_GENERATE = {
    "command": "task-master generate",
    "purpose": "Create tasks from a text description.",
    "options": {
        "--text / --file": "Where to read the description (stdin by default)",
        "--batch": "Several tasks separated by '###'",
        "--plan": "One task per paragraph; priorities and subtasks are inferred",
        "--starter": "Create the default project skeleton",
        "--priority": "Override the priority of every created task",
    },
    "notes": [
        "First line: title; '-', '*' or '1.' lines: subtasks",
        "Tags like [P:1] or [priority: 3] set the priority",
    ],
}
