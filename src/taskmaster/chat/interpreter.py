"""Map chat phrases to structured commands.

The interpreter only classifies text; executing the command is left to
the caller. English phrases are primary and the Russian phrases of the
earlier chat front end are accepted as aliases.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel


class CommandKind(str, Enum):
    LIST = "list"
    NEXT = "next"
    START = "start"
    COMPLETE = "complete"
    CREATE = "create"
    GENERATE = "generate"
    BATCH = "batch"
    PLAN = "plan"
    SUMMARY = "summary"
    HISTORY = "history"
    HELP = "help"


class ChatCommand(BaseModel):
    """A recognized chat command.

    task_ref is the raw task or subtask id ("3", "3.2") for commands that
    target one; text is the free-form payload that followed the phrase.
    """

    kind: CommandKind
    task_ref: str | None = None
    text: str = ""


class Unrecognized(BaseModel):
    text: str


_REF = r"#?(?P<ref>\d+(?:\.\d+)?)"
_TEXT = r"(?:\s*[:\-]?\s*(?P<text>.*))?$"
_FLAGS = re.IGNORECASE | re.DOTALL

# First match wins; longer phrases come before their prefixes.
PATTERNS: list[tuple[CommandKind, re.Pattern[str]]] = [
    (
        CommandKind.PLAN,
        re.compile(
            r"^.*?(?:create (?:a )?task list from (?:the )?plan|(?:create|generate) tasks from (?:the |our )?"
            r"(?:plan|discussion)|создай список задач из плана|сгенерируй задачи из плана"
            r"|создай задачи из нашего обсуждения)\b" + _TEXT,
            _FLAGS,
        ),
    ),
    (
        CommandKind.BATCH,
        re.compile(r"^(?:create tasks|generate tasks|создай задачи|сгенерируй задачи)\b" + _TEXT, _FLAGS),
    ),
    (
        CommandKind.GENERATE,
        re.compile(r"^(?:generate (?:a )?task|сгенерируй задачу)\b" + _TEXT, _FLAGS),
    ),
    (
        CommandKind.CREATE,
        re.compile(r"^(?:create (?:a )?task|add (?:a )?task|создай задачу)\b" + _TEXT, _FLAGS),
    ),
    (
        CommandKind.COMPLETE,
        re.compile(
            r"(?:(?:mark|set) task " + _REF + r" (?:as )?(?:done|complete[d]?|finished)"
            r"|(?:complete|finish) task " + _REF.replace("ref", "ref2") + r"\b"
            r"|отметь задачу " + _REF.replace("ref", "ref3") + r" как выполненн)",
            _FLAGS,
        ),
    ),
    (
        CommandKind.START,
        re.compile(r"(?:start task|begin task|начни задачу|возьми задачу) " + _REF, _FLAGS),
    ),
    (
        CommandKind.LIST,
        re.compile(
            r"(?:(?:show|list)(?: all)?(?: the)? tasks|task list|покажи список задач|покажи задачи)",
            _FLAGS,
        ),
    ),
    (
        CommandKind.NEXT,
        re.compile(
            r"(?:next task|what(?:'s| is) next|дай следующую задачу|какая следующая задача)",
            _FLAGS,
        ),
    ),
    (
        CommandKind.HISTORY,
        re.compile(r"(?:history|история)(?:\s+(?:of |for |задачи )?(?:task )?" + _REF + r")?", _FLAGS),
    ),
    (
        CommandKind.SUMMARY,
        re.compile(r"(?:summary|project status|сводка|статус проекта)", _FLAGS),
    ),
    (
        CommandKind.HELP,
        re.compile(r"(?:help|how to use|помощь|справка|как использовать|инструкция)", _FLAGS),
    ),
]


class CommandInterpreter:
    """Classifies a chat message into a ChatCommand."""

    def __init__(self, patterns: list[tuple[CommandKind, re.Pattern[str]]] | None = None):
        self.patterns = patterns if patterns is not None else PATTERNS

    def interpret(self, text: str) -> ChatCommand | Unrecognized:
        message = text.strip()
        if not message:
            return Unrecognized(text=text)

        for kind, pattern in self.patterns:
            match = pattern.search(message)
            if match is None:
                continue
            groups = match.groupdict()
            ref = groups.get("ref") or groups.get("ref2") or groups.get("ref3")
            payload = (groups.get("text") or "").strip()
            return ChatCommand(kind=kind, task_ref=ref, text=payload)

        return Unrecognized(text=message)
