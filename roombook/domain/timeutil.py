"""Conversions between ``HH:MM`` wall-clock strings and minutes since midnight."""

from __future__ import annotations

import re

MINUTES_PER_DAY = 24 * 60

# 24-hour HH:MM with ASCII digits only, also used as the pattern for time query
# parameters.
TIME_PATTERN = r"^([01][0-9]|2[0-3]):([0-5][0-9])$"
_TIME_RE = re.compile(TIME_PATTERN)


class MalformedTimeError(ValueError):
    """Raised when a time-of-day string cannot be parsed."""


def to_minutes(value: str) -> int:
    """Parse ``HH:MM`` (24-hour) and return minutes since midnight."""
    match = _TIME_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        raise MalformedTimeError(f"Invalid time {value!r} (expected HH:MM, 00:00-23:59)")
    return int(match.group(1)) * 60 + int(match.group(2))


def to_time_of_day(minutes: int) -> str:
    """Inverse of :func:`to_minutes`. Only defined for ``[0, 1440)``."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes must be in [0, {MINUTES_PER_DAY}), got {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
