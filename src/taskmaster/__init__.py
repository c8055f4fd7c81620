"""task-master - local task tracking with an assistant context log."""

__version__ = "0.1.0"
