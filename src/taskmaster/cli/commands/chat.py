"""task-master chat command - run a free-text command."""

from __future__ import annotations

from typing import Any

import typer
from rich.markup import escape

from taskmaster.chat.interpreter import ChatCommand, CommandInterpreter, CommandKind, Unrecognized
from taskmaster.cli.common import emit, fail, get_engine, show_explain
from taskmaster.core.errors import InvalidInputError
from taskmaster.core.ids import parse_task_id, parse_task_ref
from taskmaster.core.lifecycle import LifecycleEngine
from taskmaster.core.plan import parse_batch, parse_plan, parse_task_block, starter_plan
from taskmaster.core.scheduler import get_next
from taskmaster.errors import TaskMasterError
from taskmaster.models.task import Task, TaskDraft
from taskmaster.store.context_log import render_summary
from taskmaster.util.output import console

CHAT_DESCRIPTION = "Created via chat"
NEW_TASK_TITLE = "New task"
GENERATED_TITLE_WORDS = 5

HELP_TEXT = """\
Commands:
  create task <title>            create one task
  generate task <description>    create a task from a description
  create tasks <descriptions>    create several tasks separated by ###
  create tasks from plan <plan>  one task per paragraph
  show tasks                     list all tasks
  next task                      show the next task
  start task <id>                start a task
  mark task <id> as done         complete a task or subtask (e.g. 3.2)
  summary                        project summary
  history [of task <id>]         task history

In descriptions the first line is the title, lines starting with
'-', '*' or '1.' become subtasks and [P:1] sets the priority
(1 high, 2 medium, 3 low)."""


def _task_line(task: Task) -> str:
    return f"#{task.id} [{task.status.value}] {task.title} (priority {task.priority})"


def _created_reply(created: list[Task]) -> str:
    lines = [f"Created {len(created)} task(s):"]
    for task in created:
        lines.append(f"  {_task_line(task)}")
        lines.extend(f"    {subtask.id} {subtask.title}" for subtask in task.subtasks)
    return "\n".join(lines)


def _drafts_for(command: ChatCommand, default_priority: int) -> list[TaskDraft]:
    if command.kind == CommandKind.CREATE:
        return [
            TaskDraft(
                title=command.text or NEW_TASK_TITLE,
                description=CHAT_DESCRIPTION,
                priority=default_priority,
            )
        ]
    if command.kind == CommandKind.GENERATE:
        draft = parse_task_block(
            command.text,
            CHAT_DESCRIPTION,
            max_title_words=GENERATED_TITLE_WORDS,
            default_priority=default_priority,
        )
        if draft is None:
            raise InvalidInputError("Describe the task after the command, e.g. 'generate task Add login form'")
        return [draft]
    if command.kind == CommandKind.BATCH:
        drafts = parse_batch(command.text, CHAT_DESCRIPTION, default_priority=default_priority)
        if not drafts:
            raise InvalidInputError("No tasks found. Separate tasks with '###'")
        return drafts
    return parse_plan(command.text) or starter_plan()


def execute(engine: LifecycleEngine, command: ChatCommand) -> tuple[str, dict[str, Any]]:
    """Run a chat command and return the reply text and structured data.

    Raises:
        TaskMasterError: If the underlying operation fails.
    """
    kind = command.kind

    if kind == CommandKind.HELP:
        return HELP_TEXT, {}

    if kind in (CommandKind.CREATE, CommandKind.GENERATE, CommandKind.BATCH, CommandKind.PLAN):
        created = engine.create_tasks(_drafts_for(command, engine.settings.default_priority))
        return _created_reply(created), {"created": [t.model_dump(mode="json") for t in created]}

    if kind == CommandKind.START:
        result = engine.start(parse_task_id(command.task_ref) if command.task_ref else None)
        return f"Started {_task_line(result.task)}", {"task": result.task.model_dump(mode="json")}

    if kind == CommandKind.COMPLETE:
        result = engine.complete(command.task_ref)
        target = result.subtask_id or f"#{result.task.id}"
        if result.already_done:
            reply = f"{target} is already done"
        else:
            reply = f"Completed {target} {result.task.title}"
            if result.rolled_up:
                reply += f"\nAll subtasks done, #{result.task.id} completed"
        if result.next_task is not None:
            reply += f"\nNext: {_task_line(result.next_task)}"
        data = {
            "task": result.task.model_dump(mode="json"),
            "already_done": result.already_done,
            "warnings": result.warnings,
        }
        return reply, data

    if kind == CommandKind.SUMMARY:
        summary = engine.log.project_summary(engine.store.load())
        return render_summary(summary), summary.model_dump()

    if kind == CommandKind.HISTORY:
        if command.task_ref:
            task_id = parse_task_ref(command.task_ref).task_id
            entries = list(engine.log.history_for(task_id))
        else:
            entries = engine.log.all_history()
        lines = [f"#{e.task_id} {e.action.value}: {e.summary}" for e in entries] or ["No history yet."]
        return "\n".join(lines), {
            "history": [e.model_dump(mode="json", by_alias=True) for e in entries]
        }

    task_list = engine.store.load()

    if kind == CommandKind.NEXT:
        upcoming = get_next(task_list.tasks)
        if upcoming is None:
            return "No pending tasks.", {"task": None}
        engine.export_task_context(upcoming)
        lines = [f"Next: {_task_line(upcoming)}", upcoming.description]
        lines.extend(f"  {s.id} {s.title}" for s in upcoming.subtasks)
        return "\n".join(lines), {"task": upcoming.model_dump(mode="json")}

    # CommandKind.LIST
    if not task_list.tasks:
        return "No tasks yet.", {"tasks": []}
    lines = [f"Tasks of {task_list.project}:"]
    for task in task_list.tasks:
        lines.append(f"  {_task_line(task)}")
        lines.extend(
            f"    {'x' if s.is_done else ' '} {s.id} {s.title}" for s in task.subtasks
        )
    return "\n".join(lines), {"tasks": [t.model_dump(mode="json") for t in task_list.tasks]}


def chat_command(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="What to do, e.g. \"show tasks\" or \"mark task 3 as done\"."),
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
    """Run a command written in plain language."""
    if explain:
        show_explain(_EXPLAIN_CHAT, json_output)
        return

    command = CommandInterpreter().interpret(message)
    if isinstance(command, Unrecognized):
        fail(
            InvalidInputError(
                "Command not recognized. Try \"help\" for the list of commands.",
                suggested_action='task-master chat "help"',
            ),
            json_output,
        )

    engine = get_engine(ctx, json_output)
    try:
        reply, data = execute(engine, command)
    except TaskMasterError as e:
        fail(e, json_output)

    if emit({"command": command.model_dump(), "reply": reply, **data}, json_output):
        return
    console.print(escape(reply))


_EXPLAIN_CHAT = {
    "command": "task-master chat \"<text>\"",
    "purpose": "Interpret a plain-language command and run it.",
    "notes": [
        "Run task-master chat help for the supported phrases",
        "Task descriptions use the same format as generate",
    ],
}
