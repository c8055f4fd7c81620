"""Console output helpers - themed rich console and JSON printing."""

from __future__ import annotations

import json
import sys
from typing import Any

from rich.console import Console
from rich.theme import Theme

THEME = Theme(
    {
        "error": "bold red",
        "warning": "yellow",
        "success": "green",
        "info": "cyan",
        "muted": "dim",
        "command": "bold blue",
        "task_id": "bold magenta",
    }
)

console = Console(theme=THEME, highlight=False)


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def print_json(data: Any) -> None:
    """Write JSON to stdout without any rich markup or wrapping."""
    sys.stdout.write(format_json(data) + "\n")
    sys.stdout.flush()


def print_rich(message: str, style: str | None = None) -> None:
    console.print(message, style=style)
