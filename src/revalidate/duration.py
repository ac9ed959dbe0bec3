"""Duration parsing utilities."""

import re
import time

from revalidate.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(duration: Duration) -> int:
    """Parse duration string to milliseconds. Passthrough if already int."""
    if isinstance(duration, int) and not isinstance(duration, bool):
        if duration < 0:
            raise ValueError(f"Invalid duration: {duration!r}")
        return duration

    if not isinstance(duration, str):
        raise ValueError(f"Invalid duration: {duration!r}")

    match = _DURATION_PATTERN.match(duration)
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return int(value) * _UNITS[unit]


def parse_optional_duration(duration: Duration | None) -> int | None:
    """Like parse_duration, but None stays None (unset)."""
    if duration is None:
        return None
    return parse_duration(duration)


def now_us() -> int:
    """Current wall-clock time as Unix microseconds.

    Durations are given in milliseconds; entry instants are kept in
    microseconds so back-to-back calls rarely share a tick.
    """
    return time.time_ns() // 1000
