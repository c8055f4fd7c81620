"""Logging setup for the CLI."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOGGER_NAME = "taskmaster"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    json_logs: bool = False,
) -> logging.Logger:
    """
    Configure the package logger to write to stderr and optionally a file.

    Only warnings reach stderr unless verbose is set; the log file always
    receives debug output.

    Args:
        verbose: Lower the stderr threshold to DEBUG
        log_file: Optional file path for logging
        json_logs: Whether to use JSON-line format for logs
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Repeated invocations in one process (tests) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(JSON_FORMAT if json_logs else TEXT_FORMAT)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
