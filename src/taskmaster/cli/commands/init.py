"""task-master init command - create the task store and context log."""

from __future__ import annotations

import typer

from taskmaster.cli.common import fail, get_location, get_settings, show_explain
from taskmaster.errors import TaskMasterError
from taskmaster.models.envelope import NEXT_ACTION_GENERATE, NEXT_ACTION_LIST, Envelope
from taskmaster.store.context_log import ContextLog
from taskmaster.store.loader import TaskStore
from taskmaster.util.output import console, print_json, print_rich
from taskmaster.util.paths import StoreMode

GLOBAL_PROJECT_NAME = "Global Tasks"


def init_command(
    ctx: typer.Context,
    project_name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Project name. Defaults to the project directory name.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing task store and context log.",
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
    """Initialize a new task store.

    Creates tasks/tasks.json with an empty task list and tasks/context.json
    with an empty history. With --global the store goes to ~/.task-master.
    """
    if explain:
        show_explain(_EXPLAIN, json_output)
        return

    location = get_location(ctx, for_init=True)

    if location.is_initialized() and not force:
        message = f"Already initialized at {location.tasks_file}"
        if json_output:
            print_json(
                Envelope.failure(
                    f"{message}. Use --force to reinitialize.",
                    error_code="AlreadyInitialized",
                    next_actions=[NEXT_ACTION_LIST],
                ).model_dump()
            )
        else:
            print_rich(f"[error]{message}[/error]")
            print_rich("Use --force to reinitialize.", style="muted")
        raise typer.Exit(1)

    settings = get_settings(location, json_output)
    if location.mode == StoreMode.GLOBAL:
        default_name = GLOBAL_PROJECT_NAME
    else:
        default_name = location.tasks_dir.resolve().parent.name
    name = project_name or settings.project_name or default_name

    try:
        TaskStore(location, lock_timeout=settings.lock_timeout).create(name)
        ContextLog(location, lock_timeout=settings.lock_timeout).create()
    except TaskMasterError as e:
        fail(e, json_output)

    result = {
        "initialized": True,
        "project": name,
        "mode": location.mode.value,
        "tasks_dir": str(location.tasks_dir),
        "files_created": [str(location.tasks_file), str(location.context_file)],
    }

    if json_output:
        print_json(Envelope.success(result, next_actions=[NEXT_ACTION_GENERATE]).model_dump())
        return

    console.print()
    console.print(f"[success]Initialized {location.mode.value} task store for {name}[/success]")
    console.print()
    console.print("[muted]Created:[/muted]")
    console.print(f"  {location.tasks_file}")
    console.print(f"  {location.context_file}")
    console.print()
    console.print("[info]Next steps:[/info]")
    console.print("  1. Run [command]task-master generate[/command] to add tasks")
    console.print("  2. Run [command]task-master next --start[/command] to begin work")
    console.print()


_EXPLAIN = {
    "command": "task-master init",
    "purpose": "Create the task store and the history log for a project.",
    "creates": [
        "tasks/tasks.json - current tasks and their status",
        "tasks/context.json - append-only history of task activity",
    ],
    "options": {
        "--name": "Project name (defaults to the directory name or config.yaml)",
        "--force": "Reset an existing store to an empty task list",
    },
    "notes": [
        "Creates ./tasks unless global mode is selected (task-master --global init)",
        "Run once per project",
        "Commit tasks.json and context.json to version control",
    ],
}
