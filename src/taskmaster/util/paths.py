"""Path utilities for locating the task store directory."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

TASKS_DIR = "tasks"
TASKS_FILE = "tasks.json"
CONTEXT_FILE = "context.json"
ASSISTANT_FILE = "copilot-context.md"
CONFIG_FILE = "config.yaml"
GLOBAL_DIR = ".task-master"


class StoreMode(str, Enum):
    """Whether the store belongs to one project or is shared."""

    LOCAL = "local"
    GLOBAL = "global"


class StoreLocation(BaseModel):
    """Where the task store, context log and derived files live.

    Built once at the CLI boundary and passed to every component.
    """

    model_config = ConfigDict(frozen=True)

    tasks_dir: Path
    tasks_file: Path
    context_file: Path
    assistant_file: Path
    config_file: Path
    mode: StoreMode = StoreMode.LOCAL

    @classmethod
    def for_directory(
        cls,
        tasks_dir: Path,
        tasks_file: Path | None = None,
        mode: StoreMode = StoreMode.LOCAL,
    ) -> StoreLocation:
        """Build a location rooted at a tasks directory.

        Args:
            tasks_dir: Directory holding context.json and derived files.
            tasks_file: Explicit tasks.json path. Defaults to tasks_dir/tasks.json.
            mode: Whether this is a project store or the global one.
        """
        return cls(
            tasks_dir=tasks_dir,
            tasks_file=tasks_file or tasks_dir / TASKS_FILE,
            context_file=tasks_dir / CONTEXT_FILE,
            assistant_file=tasks_dir / ASSISTANT_FILE,
            config_file=tasks_dir / CONFIG_FILE,
            mode=mode,
        )

    @property
    def tasks_lock(self) -> Path:
        return self.tasks_file.with_suffix(".lock")

    @property
    def context_lock(self) -> Path:
        return self.context_file.with_suffix(".lock")

    def is_initialized(self) -> bool:
        return self.tasks_file.exists()


def find_tasks_root(start: Path | None = None) -> Path | None:
    """Find the directory containing tasks/tasks.json.

    Searches from the start directory upward until a tasks store is found
    or the filesystem root is reached.

    Args:
        start: Starting directory. Defaults to current working directory.

    Returns:
        The project directory containing the tasks store, or None if not found.
    """
    if start is None:
        start = Path.cwd()

    current = start.resolve()

    while current != current.parent:
        if (current / TASKS_DIR / TASKS_FILE).is_file():
            return current
        current = current.parent

    if (current / TASKS_DIR / TASKS_FILE).is_file():
        return current

    return None


def global_tasks_dir(home: Path | None = None) -> Path:
    """The shared store used outside any project (~/.task-master)."""
    return (home or Path.home()) / GLOBAL_DIR


def resolve_location(
    tasks_dir: Path | None = None,
    tasks_file: Path | None = None,
    start: Path | None = None,
    mode: StoreMode | None = None,
    home: Path | None = None,
    for_init: bool = False,
) -> StoreLocation:
    """Resolve the store location for a command.

    An explicit directory or tasks file wins. In global mode the shared
    store under the home directory is used. Otherwise the nearest project
    with an initialized store is used. Without one, `init` (and local
    mode) falls back to ./tasks so there is somewhere to write, and every
    other command falls back to the global store.
    """
    if tasks_dir is None and tasks_file is not None:
        tasks_dir = tasks_file.parent

    if tasks_dir is not None:
        return StoreLocation.for_directory(tasks_dir, tasks_file, mode=mode or StoreMode.LOCAL)

    if mode == StoreMode.GLOBAL:
        return StoreLocation.for_directory(global_tasks_dir(home), mode=StoreMode.GLOBAL)

    root = find_tasks_root(start)
    if root is not None:
        return StoreLocation.for_directory(root / TASKS_DIR)

    if mode == StoreMode.LOCAL or for_init:
        return StoreLocation.for_directory((start or Path.cwd()).resolve() / TASKS_DIR)

    return StoreLocation.for_directory(global_tasks_dir(home), mode=StoreMode.GLOBAL)
