"""Expand interval directives into concrete announcements.

Offsets are measured on the remaining-time axis: an announcement with
``offset_ms=60000`` is due when one minute of the countdown is left.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import Suffixes
from .messages import format_fraction_message, format_time_message
from .notation import IntervalDirective

HALF_WAY_WINDOW_MS = 5_000


@dataclass(frozen=True)
class Announcement:
    offset_ms: int
    message: str
    source: str = ""


def _too_close(current: int, previous: int, window: int = HALF_WAY_WINDOW_MS) -> bool:
    return previous - window < current < previous + window


def half_way(duration_ms: int, suffixes: Suffixes, source: str = "") -> Announcement:
    return Announcement(offset_ms=duration_ms // 2, message=suffixes.half, source=source)


def fraction_announcements(
    directive: IntervalDirective,
    duration_ms: int,
    suffixes: Suffixes,
) -> list[Announcement]:
    """Announcements for a ``N/D`` directive."""
    denominator = directive.denominator
    if denominator == 2:
        return [half_way(duration_ms, suffixes, directive.raw)]

    multiplier = directive.multiplier
    count = denominator if multiplier == 0 or multiplier >= denominator else multiplier

    def _mark(index: int) -> int:
        return duration_ms * index // denominator

    offsets: list[Announcement] = []
    if directive.relative != "none":
        suffix = suffixes.for_relative(directive.relative)
        anchor = duration_ms if directive.relative == "first" else 0
        # The D/D mark sits on an edge of the countdown, which is never announced.
        for index in range(1, min(count, denominator - 1) + 1):
            offsets.append(
                Announcement(
                    offset_ms=abs(anchor - _mark(index)),
                    message=format_fraction_message(index, denominator, suffixes.half) + suffix,
                    source=directive.raw,
                )
            )
    else:
        for index in range(1, count // 2 + 1):
            message = format_fraction_message(index, denominator, suffixes.half)
            offsets.append(
                Announcement(
                    offset_ms=duration_ms - _mark(index),
                    message=message + suffixes.first,
                    source=directive.raw,
                )
            )
            offsets.append(
                Announcement(
                    offset_ms=_mark(index),
                    message=message + suffixes.last,
                    source=directive.raw,
                )
            )

    half = duration_ms // 2
    return [
        half_way(duration_ms, suffixes, item.source) if _too_close(item.offset_ms, half) else item
        for item in offsets
    ]


def time_announcements(
    directive: IntervalDirective,
    duration_ms: int,
    suffixes: Suffixes,
) -> list[Announcement]:
    """Announcements for a time directive such as ``30s``, ``allLast10`` or ``every-first-5m``."""
    interval = directive.interval_ms
    suffix = suffixes.for_relative(directive.relative)
    offsets: list[Announcement] = []

    if directive.repeat_all or directive.every:
        if directive.relative == "none":
            # Symmetric: "1 minute to go" near the end mirrors "1 minute gone" near the start.
            offset = interval
            while offset <= duration_ms / 2:
                offsets.append(
                    Announcement(
                        offset_ms=offset,
                        message=format_time_message(offset, suffixes.last),
                        source=directive.raw,
                    )
                )
                offsets.append(
                    Announcement(
                        offset_ms=duration_ms - offset,
                        message=format_time_message(offset, suffixes.first),
                        source=directive.raw,
                    )
                )
                offset += interval
            return offsets

        if directive.every:
            cadence = interval
            count = duration_ms // cadence
        else:
            cadence = directive.unit_ms
            count = min(directive.quantity, duration_ms // cadence)
        anchor = duration_ms if directive.relative == "first" else 0
        force_suffix = directive.every or directive.relative == "first"
        for index in range(count, 0, -1):
            elapsed = index * cadence
            offsets.append(
                Announcement(
                    offset_ms=abs(anchor - elapsed),
                    message=format_time_message(elapsed, suffix, force_suffix),
                    source=directive.raw,
                )
            )
        return offsets

    if directive.multiplier > 1:
        # "3last20": the last three twenty-second marks.
        count = min(directive.multiplier, duration_ms // interval)
        for index in range(1, count + 1):
            elapsed = index * interval
            offset = duration_ms - elapsed if directive.relative == "first" else elapsed
            offsets.append(
                Announcement(
                    offset_ms=offset,
                    message=format_time_message(elapsed, suffix),
                    source=directive.raw,
                )
            )
        return offsets

    offset = duration_ms - interval if directive.relative == "first" else interval
    return [Announcement(offset_ms=offset, message=format_time_message(interval, suffix), source=directive.raw)]


def expand_directive(
    directive: IntervalDirective,
    duration_ms: int,
    suffixes: Suffixes | None = None,
) -> list[Announcement]:
    """Expand one directive against the full countdown duration."""
    suffixes = suffixes or Suffixes()
    if duration_ms <= 0:
        return []
    if directive.is_fraction:
        return fraction_announcements(directive, duration_ms, suffixes)
    return time_announcements(directive, duration_ms, suffixes)
