"""JSON output envelope shared by every command."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class NextAction(BaseModel):
    """A suggested follow-up command."""

    intent: str = Field(description="Machine-readable intent, e.g. 'task.start'")
    cmd: str = Field(description="Command line to run")
    description: str = Field(default="", description="Human-readable hint")


class Envelope(BaseModel):
    """Standard response wrapper for --json output."""

    ok: bool
    data: Any = None
    error: str | None = None
    error_code: str | None = None
    warnings: list[str] = Field(default_factory=list)
    next_actions: list[NextAction] = Field(default_factory=list)

    @classmethod
    def success(
        cls,
        data: Any,
        next_actions: list[NextAction] | None = None,
        warnings: list[str] | None = None,
    ) -> Envelope:
        return cls(ok=True, data=data, next_actions=next_actions or [], warnings=warnings or [])

    @classmethod
    def failure(
        cls,
        message: str,
        error_code: str | None = None,
        next_actions: list[NextAction] | None = None,
    ) -> Envelope:
        return cls(
            ok=False,
            error=message,
            error_code=error_code,
            next_actions=next_actions or [],
        )


NEXT_ACTION_INIT = NextAction(
    intent="store.init",
    cmd="task-master init",
    description="Initialize the task store",
)

NEXT_ACTION_LIST = NextAction(
    intent="task.list",
    cmd="task-master list",
    description="List all tasks",
)

NEXT_ACTION_GENERATE = NextAction(
    intent="task.generate",
    cmd="task-master generate",
    description="Create tasks from a description",
)
