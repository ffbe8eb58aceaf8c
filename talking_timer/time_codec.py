"""Duration parsing, time-component conversion and display formatting."""

from __future__ import annotations

import re
from dataclasses import dataclass

MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
MS_PER_SECOND = 1_000
MS_PER_TENTH = 100

MAX_DURATION_SECONDS = 86_400
MAX_DURATION_MS = MAX_DURATION_SECONDS * MS_PER_SECOND

MULTIPLIERS = {
    "hours": MS_PER_HOUR,
    "minutes": MS_PER_MINUTE,
    "seconds": MS_PER_SECOND,
    "tenths": MS_PER_TENTH,
}

# "SS", "MM:SS", "HH:MM:SS" or a bare second count of 60 and up
_DURATION_PATTERN = re.compile(
    r"^(?:(?:(?:(?P<hours>[01]?\d|2[0-4]):)?(?P<minutes>[0-5]?\d):)?(?P<seconds>[0-5]?\d)"
    r"|(?P<total>[6-9]\d|[1-9]\d{2,5}))$"
)


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


@dataclass(frozen=True)
class TimeComponents:
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    tenths: int = 0
    milliseconds: int = 0  # sub-tenth remainder, 0-99


def clamp_duration(milliseconds: int) -> int:
    """Clamp a millisecond count into the supported 0-24h range."""
    return max(0, min(MAX_DURATION_MS, int(milliseconds)))


def parse_duration(text: str | None) -> int:
    """Parse "SS", "MM:SS", "HH:MM:SS" or a bare second count into milliseconds.

    Raises DurationError when the text matches none of the accepted forms.
    """
    if text is None or not text.strip():
        raise DurationError(
            'Duration must match one of "SS", "MM:SS" or "HH:MM:SS". Empty string provided.'
        )
    cleaned = text.strip()
    match = _DURATION_PATTERN.match(cleaned)
    if not match:
        raise DurationError(f'Duration must match one of "SS", "MM:SS" or "HH:MM:SS". "{cleaned}" does not.')
    if match.group("total"):
        seconds = min(MAX_DURATION_SECONDS, int(match.group("total")))
        return seconds * MS_PER_SECOND
    components = TimeComponents(
        hours=int(match.group("hours") or 0),
        minutes=int(match.group("minutes") or 0),
        seconds=int(match.group("seconds")),
    )
    return clamp_duration(to_duration(components))


def to_time_components(milliseconds: int) -> TimeComponents:
    """Split a millisecond count into hours, minutes, seconds and tenths."""
    remainder = max(0, int(milliseconds))
    hours, remainder = divmod(remainder, MS_PER_HOUR)
    minutes, remainder = divmod(remainder, MS_PER_MINUTE)
    seconds, remainder = divmod(remainder, MS_PER_SECOND)
    tenths, remainder = divmod(remainder, MS_PER_TENTH)
    return TimeComponents(hours=hours, minutes=minutes, seconds=seconds, tenths=tenths, milliseconds=remainder)


def to_duration(components: TimeComponents) -> int:
    """Convert time components back into milliseconds."""
    total = components.milliseconds
    for field_name, multiplier in MULTIPLIERS.items():
        total += getattr(components, field_name) * multiplier
    return total


def format_components(
    components: TimeComponents,
    *,
    suppress_leading_zeros: bool = True,
    show_tenths: bool = False,
) -> str:
    """Render components as "H:MM:SS", "M:SS" or "S" with an optional ".T" suffix."""
    fields = [components.hours, components.minutes, components.seconds]
    if suppress_leading_zeros:
        while fields and fields[0] == 0:
            fields.pop(0)
    output = ""
    for value in fields:
        if output:
            output += f":{value:02d}"
        else:
            output = str(value)
    if show_tenths:
        return f"{output or '0'}.{components.tenths}"
    return output or "0"


def format_duration(milliseconds: int, *, show_tenths: bool = False) -> str:
    """Format a millisecond count for display."""
    return format_components(to_time_components(milliseconds), show_tenths=show_tenths)
