"""task-master CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
import typer

from taskmaster import __version__
from taskmaster.cli.commands import context
from taskmaster.cli.commands.chat import chat_command
from taskmaster.cli.commands.init import init_command
from taskmaster.cli.commands.task import (
    task_complete,
    task_defer,
    task_generate,
    task_list,
    task_next,
    task_show,
    task_start,
)
from taskmaster.cli.common import CliState
from taskmaster.errors import EXIT_USER_ERROR
from taskmaster.util.log import setup_logging
from taskmaster.util.paths import StoreMode

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="task-master",
    help="Task tracking for a single developer working with an AI assistant.",
    no_args_is_help=True,
)

app.command(name="init")(init_command)
app.command(name="list")(task_list)
app.command(name="show")(task_show)
app.command(name="next")(task_next)
app.command(name="start")(task_start)
app.command(name="complete")(task_complete)
app.command(name="defer")(task_defer)
app.command(name="generate")(task_generate)
app.command(name="chat")(chat_command)
app.add_typer(context.app, name="context")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"task-master {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        is_eager=True,
        callback=_version_callback,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output to stderr.",
    ),
    log_file: Path | None = typer.Option(
        None,
        "--log-file",
        help="Also write logs to this file.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Write logs as JSON lines.",
    ),
    tasks_dir: Path | None = typer.Option(
        None,
        "--tasks-dir",
        envvar="TASK_MASTER_DIR",
        help="Directory holding tasks.json and context.json.",
    ),
    tasks_file: Path | None = typer.Option(
        None,
        "--tasks-file",
        envvar="TASK_MASTER_FILE",
        help="Path of tasks.json, if not inside the tasks directory.",
    ),
    mode: StoreMode | None = typer.Option(
        None,
        "--mode",
        envvar="TASK_MASTER_MODE",
        case_sensitive=False,
        help="Use the project store (local) or the shared ~/.task-master store (global).",
    ),
    global_store: bool = typer.Option(
        False,
        "--global",
        "-g",
        help="Shorthand for --mode global.",
    ),
) -> None:
    """Plan, track and hand over tasks from the command line."""
    _ = version
    setup_logging(verbose=verbose, log_file=log_file, json_logs=json_logs)
    if global_store:
        mode = StoreMode.GLOBAL
    ctx.obj = CliState(tasks_dir=tasks_dir, tasks_file=tasks_file, mode=mode)
    logger.debug("Invoking %s", ctx.invoked_subcommand)


def main() -> None:
    """Run the CLI.

    Usage errors exit with 1 like every other user error, leaving 2 to
    environment failures.
    """
    try:
        exit_code = app(standalone_mode=False)
    except click.exceptions.UsageError as e:
        e.show()
        sys.exit(EXIT_USER_ERROR)
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(EXIT_USER_ERROR)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    sys.exit(exit_code if isinstance(exit_code, int) else 0)


if __name__ == "__main__":
    main()
