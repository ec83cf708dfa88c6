"""Duration parsing utilities."""

import re

from tagcache.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(s|m|h|d)$")
_UNITS: dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 3_600,
    "d": 86_400,
}


def parse_duration(duration: Duration) -> int:
    """Parse duration string to seconds. Passthrough if already int."""
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, int):
        if duration < 0:
            raise ValueError(f"Invalid duration: {duration!r}")
        return duration

    match = _DURATION_PATTERN.match(duration)
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return int(value) * _UNITS[unit]
