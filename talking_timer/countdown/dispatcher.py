"""Tick-driven dispatch of scheduled announcements.

The dispatcher is a plain synchronous state machine. Something else (the
asyncio runner, or a test) calls :meth:`TickDispatcher.tick` at a fixed cadence;
each tick re-derives the remaining time from an absolute end time, so a late
tick never accumulates drift.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Literal

from talking_timer.time_codec import clamp_duration, format_duration, parse_duration

from .config import DEFAULT_LEAD_BANDS, LeadBand, TimerConfig
from .notation import IntervalDirective, parse_notation
from .schedule import Schedule, compile_schedule

DispatcherState = Literal["idle", "running", "paused", "finished"]
Clock = Callable[[], float]
MessageSink = Callable[[str], None]

# Announcements further than this from their offset when popped are dropped.
STALE_WINDOW_MS = 2_000

LOGGER = logging.getLogger("talking_timer.dispatcher")


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class DispatcherError(RuntimeError):
    """Raised for state transitions the dispatcher cannot perform."""


class LeadTable:
    """Estimated speech duration, banded on the time remaining."""

    def __init__(self, bands: Iterable[LeadBand] = DEFAULT_LEAD_BANDS) -> None:
        self._bands = tuple(sorted(bands, key=lambda band: band.remaining_ms))
        if not self._bands:
            raise ValueError("Lead table needs at least one band")

    @property
    def bands(self) -> tuple[LeadBand, ...]:
        return self._bands

    def lead_for(self, remaining_ms: float) -> int:
        for band in self._bands:
            if remaining_ms <= band.remaining_ms:
                return band.lead_ms
        return self._bands[-1].lead_ms


class TickDispatcher:
    def __init__(
        self,
        directives: Sequence[IntervalDirective],
        duration_ms: int,
        *,
        sink: MessageSink,
        config: TimerConfig | None = None,
        clock: Clock = monotonic_ms,
        on_finished: Callable[[], None] | None = None,
        on_tick: Callable[[TickDispatcher], None] | None = None,
    ) -> None:
        self._config = config or TimerConfig()
        self._lead_table = LeadTable(self._config.lead_bands)
        self._sink = sink
        self._clock = clock
        self._on_finished = on_finished
        self._on_tick = on_tick
        self._directives: tuple[IntervalDirective, ...] = tuple(directives)
        self._duration_ms = clamp_duration(duration_ms)
        self._state: DispatcherState = "idle"
        self._remaining_ms: float = self._duration_ms
        self._end_time: float | None = None
        self._schedule = self._compile()

    @classmethod
    def from_notation(
        cls,
        notation: str | None,
        duration: int | str,
        **kwargs,
    ) -> TickDispatcher:
        """Build a dispatcher from raw notation and a duration in ms or "HH:MM:SS" text."""
        config = kwargs.get("config") or TimerConfig()
        directives = parse_notation(config.say_default if notation is None else notation)
        duration_ms = parse_duration(duration) if isinstance(duration, str) else duration
        return cls(directives, duration_ms, **kwargs)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def config(self) -> TimerConfig:
        return self._config

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    @property
    def remaining_ms(self) -> int:
        return int(self._remaining_ms)

    @property
    def progress(self) -> float:
        if self._duration_ms <= 0:
            return 1.0
        return 1 - (self._remaining_ms / self._duration_ms)

    @property
    def display(self) -> str:
        return format_duration(self.remaining_ms, show_tenths=self._state != "idle")

    @property
    def directives(self) -> tuple[IntervalDirective, ...]:
        return self._directives

    @property
    def schedule(self) -> Schedule:
        return self._schedule.copy()

    def lead_for(self, remaining_ms: float) -> int:
        return self._lead_table.lead_for(remaining_ms)

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def start(self, now: float | None = None) -> None:
        if self._state == "paused":
            self.resume(now)
            return
        if self._state == "running":
            return
        if self._state == "finished":
            LOGGER.debug("Countdown already finished; reset before starting again")
            return
        if self._duration_ms <= 0:
            raise DispatcherError("Cannot start a countdown with no duration")
        now = self._now(now)
        self._end_time = now + self._remaining_ms
        self._state = "running"
        LOGGER.info("Countdown started (%s, %d announcements)", format_duration(self._duration_ms), len(self._schedule))

    def pause(self, now: float | None = None) -> None:
        if self._state != "running" or self._end_time is None:
            return
        self._remaining_ms = max(0.0, self._end_time - self._now(now))
        self._state = "paused"
        LOGGER.info("Countdown paused with %s remaining", format_duration(self.remaining_ms))

    def resume(self, now: float | None = None) -> None:
        if self._state != "paused":
            return
        self._end_time = self._now(now) + self._remaining_ms
        self._state = "running"
        LOGGER.info("Countdown resumed with %s remaining", format_duration(self.remaining_ms))

    def reset(self) -> None:
        self._schedule = self._compile()
        self._remaining_ms = self._duration_ms
        self._end_time = None
        self._state = "idle"
        LOGGER.debug("Countdown reset to %s", format_duration(self._duration_ms))

    def reconfigure(self, notation: str | None, duration: int | str) -> None:
        """Replace notation and duration, then reset.

        The duration is parsed before anything changes, so a DurationError
        leaves the dispatcher exactly as it was.
        """
        duration_ms = parse_duration(duration) if isinstance(duration, str) else duration
        directives = parse_notation(self._config.say_default if notation is None else notation)
        self._directives = directives
        self._duration_ms = clamp_duration(duration_ms)
        self.reset()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now: float | None = None) -> list[str]:
        """Advance the countdown, returning the messages emitted on this tick."""
        if self._state != "running" or self._end_time is None:
            return []
        remaining = max(0.0, self._end_time - self._now(now))
        self._remaining_ms = remaining
        emitted: list[str] = []

        if remaining <= 0:
            self._state = "finished"
            LOGGER.info("Countdown finished")
            self._notify_tick()
            if self._on_finished:
                self._on_finished()
            return emitted

        lead = self._lead_table.lead_for(remaining)
        while (head := self._schedule.head()) is not None and head.offset_ms + lead > remaining:
            self._schedule.pop()
            if abs(head.offset_ms - remaining) < STALE_WINDOW_MS:
                LOGGER.info("Announcing %r (%d ms remaining)", head.message, int(remaining))
                emitted.append(head.message)
                self._sink(head.message)
            else:
                LOGGER.debug("Dropping stale announcement %r due at %d ms", head.message, head.offset_ms)
        self._notify_tick()
        return emitted

    def _notify_tick(self) -> None:
        if self._on_tick:
            self._on_tick(self)

    def _compile(self) -> Schedule:
        return compile_schedule(
            self._directives,
            self._duration_ms,
            priority=self._config.priority,
            suffixes=self._config.suffixes,
        )

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now
