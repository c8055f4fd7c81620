"""Retry helper for file replacement racing with virus scanners and indexers."""

from __future__ import annotations

import errno
import time
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")

# WinError 5/32/33: access denied, sharing violation, lock violation
WINDOWS_TRANSIENT_ERRORS = frozenset({5, 32, 33})
POSIX_TRANSIENT_ERRNOS = frozenset({errno.EBUSY, errno.EAGAIN})


def is_transient_fs_error(error: BaseException) -> bool:
    """Return True when an OSError is worth retrying."""
    if not isinstance(error, OSError):
        return False
    winerror = getattr(error, "winerror", None)
    if winerror is not None:
        return winerror in WINDOWS_TRANSIENT_ERRORS
    return error.errno in POSIX_TRANSIENT_ERRNOS


def retry_transient(
    func: Callable[[], T],
    attempts: int = 3,
    base_delay: float = 0.05,
) -> T:
    """Call func, retrying transient file system errors with backoff.

    The delay doubles after each failed attempt. Non-transient errors and
    the final transient error propagate unchanged.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(attempts):
        try:
            return func()
        except OSError as e:
            if not is_transient_fs_error(e) or attempt == attempts - 1:
                raise
            time.sleep(base_delay * (2**attempt))

    raise RuntimeError("Unexpected retry loop exit")
