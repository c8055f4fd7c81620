"""Tests for the transient file system error retry helper."""

from __future__ import annotations

import errno

import pytest

from taskmaster.util.retry import is_transient_fs_error, retry_transient


def _winerror(code: int) -> OSError:
    error = OSError()
    error.winerror = code
    return error


def test_is_transient_detects_windows_sharing_violation():
    """WinError 32 is raised while another process holds the file open."""
    assert is_transient_fs_error(_winerror(32))


def test_is_transient_detects_windows_access_denied_and_lock_violation():
    assert is_transient_fs_error(_winerror(5))
    assert is_transient_fs_error(_winerror(33))


def test_is_transient_rejects_other_winerrors():
    assert not is_transient_fs_error(_winerror(2))


def test_is_transient_detects_posix_busy():
    assert is_transient_fs_error(OSError(errno.EBUSY, "busy"))
    assert is_transient_fs_error(OSError(errno.EAGAIN, "try again"))


def test_is_transient_rejects_posix_permission_error():
    assert not is_transient_fs_error(OSError(errno.EACCES, "denied"))


def test_is_transient_rejects_non_oserror():
    assert not is_transient_fs_error(ValueError("test"))
    assert not is_transient_fs_error(RuntimeError("test"))


def test_retry_succeeds_on_first_attempt():
    call_count = 0

    def success_func():
        nonlocal call_count
        call_count += 1
        return "success"

    assert retry_transient(success_func) == "success"
    assert call_count == 1


def test_retry_succeeds_after_transient_errors():
    call_count = 0

    def eventually_succeeds():
        nonlocal call_count
        call_count += 1
        if call_count < 3:
            raise _winerror(32)
        return "success"

    assert retry_transient(eventually_succeeds, attempts=3, base_delay=0.001) == "success"
    assert call_count == 3


def test_retry_raises_last_error_after_max_attempts():
    call_count = 0

    def always_fails():
        nonlocal call_count
        call_count += 1
        raise _winerror(5)

    with pytest.raises(OSError) as exc_info:
        retry_transient(always_fails, attempts=3, base_delay=0.001)

    assert exc_info.value.winerror == 5
    assert call_count == 3


def test_retry_does_not_retry_non_transient_oserror():
    call_count = 0

    def raises_not_found():
        nonlocal call_count
        call_count += 1
        raise _winerror(2)

    with pytest.raises(OSError):
        retry_transient(raises_not_found, attempts=3, base_delay=0.001)

    assert call_count == 1


def test_retry_does_not_catch_other_exceptions():
    call_count = 0

    def raises_value_error():
        nonlocal call_count
        call_count += 1
        raise ValueError("Not a transient error")

    with pytest.raises(ValueError, match="Not a transient error"):
        retry_transient(raises_value_error, attempts=3, base_delay=0.001)

    assert call_count == 1


def test_retry_rejects_zero_attempts():
    with pytest.raises(ValueError):
        retry_transient(lambda: None, attempts=0)
