"""task-master context commands - history, summaries and assistant context."""

from __future__ import annotations

from typing import Any

import typer
from rich.markup import escape

from taskmaster.cli.common import emit, fail, get_engine, show_explain
from taskmaster.core.assistant import render_task_context, write_task_context
from taskmaster.core.errors import InvalidInputError, NoPendingTaskError, TaskNotFoundError
from taskmaster.core.ids import parse_task_id, parse_task_ref
from taskmaster.core.lifecycle import LifecycleEngine
from taskmaster.core.scheduler import get_current, get_next
from taskmaster.errors import TaskMasterError
from taskmaster.models.context import HistoryAction, HistoryEntry
from taskmaster.models.envelope import NextAction
from taskmaster.models.task import Task
from taskmaster.store.context_log import render_summary
from taskmaster.util.output import console
from taskmaster.util.time import format_timestamp, parse_duration

app = typer.Typer(
    help="Task history and assistant context.",
    no_args_is_help=False,
)

ACTION_STYLES = {
    HistoryAction.START: "info",
    HistoryAction.UPDATE: "warning",
    HistoryAction.COMPLETE: "success",
}


def _entry_data(entries: list[HistoryEntry]) -> list[dict[str, Any]]:
    return [entry.model_dump(mode="json", by_alias=True) for entry in entries]


def _print_entries(entries: list[HistoryEntry], indent: str = "  ") -> None:
    for entry in entries:
        style = ACTION_STYLES.get(entry.action, "muted")
        console.print(
            f"{indent}[muted]{format_timestamp(entry.timestamp)}[/muted] "
            f"[{style}]{entry.action.value}[/{style}] {escape(entry.summary)}"
        )


def _show_summary(ctx: typer.Context, json_output: bool) -> None:
    engine = get_engine(ctx, json_output)
    try:
        summary = engine.log.project_summary(engine.store.load())
    except TaskMasterError as e:
        fail(e, json_output)

    data = summary.model_dump()
    data["digest"] = render_summary(summary)
    if emit(data, json_output):
        return

    console.print()
    console.print("[bold]Project summary[/bold]")
    console.print()
    console.print(escape(data["digest"]))
    console.print()


@app.callback(invoke_without_command=True)
def context_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
) -> None:
    """Task history and assistant context.

    Without a subcommand, shows the project summary.
    """
    if ctx.invoked_subcommand is None:
        _show_summary(ctx, json_output)


@app.command(name="summary")
def context_summary(
    ctx: typer.Context,
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
    """Show status counts, the active task and the latest activity."""
    if explain:
        show_explain(_EXPLAIN_SUMMARY, json_output)
        return
    _show_summary(ctx, json_output)


@app.command(name="history")
def context_history(
    ctx: typer.Context,
    task_id: str | None = typer.Argument(None, help="Only show the history of this task."),
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
    """Show the history of one task, or of all tasks grouped by task."""
    if explain:
        show_explain(_EXPLAIN_HISTORY, json_output)
        return

    engine = get_engine(ctx, json_output)

    if task_id is not None:
        try:
            task_ref = parse_task_ref(task_id)
            entries = list(engine.log.history_for(task_ref.task_id))
        except TaskMasterError as e:
            fail(e, json_output)

        if emit({"task_id": task_ref.task_id, "history": _entry_data(entries)}, json_output):
            return

        console.print()
        if not entries:
            console.print(f"[muted]No history for task #{task_ref.task_id}.[/muted]")
        else:
            console.print(f"[bold]History of #{task_ref.task_id} {escape(entries[-1].task_title)}[/bold]")
            _print_entries(entries)
        console.print()
        return

    try:
        groups = engine.log.grouped_history()
    except TaskMasterError as e:
        fail(e, json_output)

    data = {
        "tasks": [
            {"task_id": group_id, "history": _entry_data(entries)}
            for group_id, entries in groups.items()
        ],
        "count": sum(len(entries) for entries in groups.values()),
    }
    if emit(data, json_output):
        return

    console.print()
    if not groups:
        console.print("[muted]No history yet.[/muted]")
    for group_id, entries in groups.items():
        console.print(f"[task_id]#{group_id}[/task_id] [bold]{escape(entries[-1].task_title)}[/bold]")
        _print_entries(entries)
        console.print()


@app.command(name="update")
def context_update(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID the note belongs to."),
    summary: str = typer.Argument(..., help="What was done."),
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
    """Record progress on a task. A pending task is started."""
    if explain:
        show_explain(_EXPLAIN_UPDATE, json_output)
        return

    engine = get_engine(ctx, json_output)
    try:
        result = engine.record_progress(parse_task_id(task_id), summary)
    except TaskMasterError as e:
        fail(e, json_output)

    data = {
        "task": result.task.model_dump(mode="json"),
        "history": _entry_data(result.entries),
    }
    if emit(data, json_output, warnings=result.warnings):
        return
    console.print(f"[success]Recorded progress on #{result.task.id}[/success] {escape(summary)}")


@app.command(name="suggest")
def context_suggest(
    ctx: typer.Context,
    start: bool = typer.Option(
        False,
        "--start",
        help="Start the suggested task if it is not started yet.",
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
    """Suggest what to work on: the active task, else the next one."""
    if explain:
        show_explain(_EXPLAIN_SUGGEST, json_output)
        return

    engine = get_engine(ctx, json_output)
    try:
        suggestion = engine.log.suggest(engine.store.load())
    except TaskMasterError as e:
        fail(e, json_output)

    if suggestion is None:
        if emit({"suggestion": None}, json_output):
            return
        console.print("[muted]Nothing to suggest. All tasks are done or deferred.[/muted]")
        return

    warnings: list[str] = []
    started = None
    if start and suggestion.kind == "start":
        try:
            started = engine.start(suggestion.task_id)
        except TaskMasterError as e:
            fail(e, json_output)
        warnings.extend(started.warnings)

    next_actions = [
        NextAction(
            intent="task.start" if suggestion.kind == "start" else "task.complete",
            cmd=(
                f"task-master start {suggestion.task_id}"
                if suggestion.kind == "start" and started is None
                else f"task-master complete {suggestion.task_id}"
            ),
        )
    ]
    data = {
        "suggestion": suggestion.model_dump(),
        "started": started is not None,
    }
    if emit(data, json_output, next_actions=next_actions, warnings=warnings):
        return

    console.print(f"[info]{escape(suggestion.message)}[/info]")
    if started is not None:
        console.print(f"[success]Started #{started.task.id} {escape(started.task.title)}[/success]")
    console.print(f"Run [command]{next_actions[0].cmd}[/command]")


def _export_target(engine: LifecycleEngine, task_id: str | None) -> Task:
    task_list = engine.store.load()
    if task_id is not None:
        parsed = parse_task_id(task_id)
        task = task_list.get_task(parsed)
        if task is None:
            raise TaskNotFoundError(parsed)
        return task

    task = get_current(task_list.tasks) or get_next(task_list.tasks)
    if task is None:
        raise NoPendingTaskError()
    return task


@app.command(name="export")
def context_export(
    ctx: typer.Context,
    task_id: str | None = typer.Argument(
        None,
        help="Task ID to export. Defaults to the active task, else the next one.",
    ),
    show: bool = typer.Option(
        False,
        "--print",
        help="Also print the rendered context.",
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
    """Write the assistant context file for a task."""
    if explain:
        show_explain(_EXPLAIN_EXPORT, json_output)
        return

    engine = get_engine(ctx, json_output)
    try:
        task = _export_target(engine, task_id)
    except TaskMasterError as e:
        fail(e, json_output)

    warnings: list[str] = []
    try:
        history = list(engine.log.history_for(task.id))
    except TaskMasterError as e:
        history = []
        warnings.append(f"History unavailable: {e.message}")

    written = write_task_context(engine.location, task, history)
    if not written:
        warnings.append(f"Assistant context file not updated: {engine.location.assistant_file}")

    content = render_task_context(task, history)
    data = {
        "task_id": task.id,
        "path": str(engine.location.assistant_file),
        "written": written,
        "content": content,
    }
    if emit(data, json_output, warnings=warnings):
        return

    if written:
        console.print(f"[success]Wrote assistant context for #{task.id}[/success] [muted]{engine.location.assistant_file}[/muted]")
    if show:
        console.print()
        console.print(escape(content))


@app.command(name="check")
def context_check(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID (or subtask ID) about to be worked on."),
    max_age: str | None = typer.Option(
        None,
        "--max-age",
        help="Refresh when the context is older than this (e.g. 30m, 1h). Default from config.",
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
    """Refresh the assistant context if it is stale for a task."""
    if explain:
        show_explain(_EXPLAIN_CHECK, json_output)
        return

    engine = get_engine(ctx, json_output)
    try:
        ref = parse_task_ref(task_id)
        try:
            age = parse_duration(max_age or engine.settings.stale_after)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        task = engine.store.load().get_task(ref.task_id)
        if task is None:
            raise TaskNotFoundError(ref.task_id)
    except TaskMasterError as e:
        fail(e, json_output)

    stale = engine.log.needs_refresh(task.id, age)
    warnings: list[str] = []
    refreshed = False
    if stale:
        refreshed = engine.export_task_context(task)
        if not refreshed:
            warnings.append(f"Assistant context file not updated: {engine.location.assistant_file}")

    data = {"task_id": task.id, "stale": stale, "refreshed": refreshed}
    if emit(data, json_output, warnings=warnings):
        return

    if not stale:
        console.print(f"[muted]Assistant context for #{task.id} is up to date.[/muted]")
    elif refreshed:
        console.print(f"[success]Refreshed assistant context for #{task.id}[/success]")


_EXPLAIN_SUMMARY = {
    "command": "task-master context summary",
    "purpose": "Show task counts by status, the active task and the latest activity.",
    "notes": ["Read only; nothing is written"],
}

_EXPLAIN_HISTORY = {
    "command": "task-master context history [id]",
    "purpose": "Show recorded history entries, oldest first.",
    "notes": ["Without an id, entries are grouped by task"],
}

_EXPLAIN_UPDATE = {
    "command": "task-master context update <id> <summary>",
    "purpose": "Record a progress note on a task.",
    "notes": [
        "A pending task is started first",
        "The note is also the latest activity in the summary",
    ],
}

_EXPLAIN_SUGGEST = {
    "command": "task-master context suggest",
    "purpose": "Suggest continuing the active task, or starting the next one.",
    "options": {"--start": "Start the suggested task"},
}

_EXPLAIN_EXPORT = {
    "command": "task-master context export [id]",
    "purpose": "Write tasks/copilot-context.md for an AI coding assistant.",
    "options": {"--print": "Print the rendered markdown as well"},
}

_EXPLAIN_CHECK = {
    "command": "task-master context check <id>",
    "purpose": "Refresh the assistant context when another task is active or it is too old.",
    "options": {"--max-age": "Maximum age before a refresh (default: stale_after in config.yaml)"},
}
