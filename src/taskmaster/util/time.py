"""Timestamp helpers and duration parsing."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

# Durations like "30m", "1h", "1d12h", "90s"
DURATION_PATTERN = re.compile(
    r"^(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$",
    re.IGNORECASE,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z'.

    Naive timestamps are assumed to be UTC.

    Raises:
        ValueError: If the value is not a timestamp.
    """
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: str) -> str:
    """Render a stored timestamp for humans, falling back to the raw value."""
    try:
        return parse_timestamp(value).astimezone().strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value


def parse_duration(value: str) -> timedelta:
    """Parse a duration string such as "1h" or "1d12h" into a timedelta.

    Raises:
        ValueError: If the format is invalid or the duration is zero.
    """
    value = value.strip().lower()
    if not value:
        raise ValueError("Duration cannot be empty")

    match = DURATION_PATTERN.match(value)
    if not match:
        raise ValueError(
            f"Invalid duration format: '{value}'. Use format like '30m', '1h', '1d12h'."
        )

    days, hours, minutes, seconds = (int(group or 0) for group in match.groups())
    duration = timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
    if not duration:
        raise ValueError("Duration must be greater than zero")
    return duration


def format_age(td: timedelta) -> str:
    """Format an elapsed time compactly, e.g. "2h5m" or "40s"."""
    total_seconds = int(td.total_seconds())
    if total_seconds < 0:
        return "in the future"

    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if not parts:
        parts.append(f"{seconds}s")
    return "".join(parts)
