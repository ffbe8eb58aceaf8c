"""
Asyncio driver for a talking countdown

Wraps a :class:`TickDispatcher` with everything that needs an event loop:

- Tick loop: calls ``tick`` every ``tick_interval_ms`` while running
- Speech: each emitted message is spoken in its own tracked task, so a slow
  TTS round trip never delays the next tick
- Start phrase: optional "Ready. Set. Go!" before the clock starts
- End sequence: end text, chime after ``pre_speak_end_ms``, then either
  self-destruct (``on_remove``) or auto-reset
- Remote control: ``handle_command`` accepts plain or JSON command payloads

Delayed steps check a generation counter before acting, so nothing scheduled
before a reset or ``close()`` fires afterwards.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from talking_timer import audio as timer_audio

from .config import TimerConfig
from .dispatcher import Clock, DispatcherError, TickDispatcher, monotonic_ms
from .speakers import Speaker

StateCallback = Callable[[dict[str, Any]], None]
ProgressCallback = Callable[[TickDispatcher], None]

COMMANDS = {"start", "pause", "resume", "reset", "restart", "configure"}

LOGGER = logging.getLogger("talking_timer.runner")


class CountdownRunner:
    def __init__(
        self,
        notation: str | None,
        duration: int | str,
        *,
        speaker: Speaker,
        config: TimerConfig | None = None,
        clock: Clock = monotonic_ms,
        chime: Callable[[], bool] | None = None,
        on_progress: ProgressCallback | None = None,
        on_state: StateCallback | None = None,
        on_announcement: Callable[[str], None] | None = None,
        on_remove: Callable[[], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or TimerConfig()
        self._speaker = speaker
        self._chime = chime or timer_audio.play_end_chime
        self._on_progress = on_progress
        self._on_state = on_state
        self._on_announcement = on_announcement
        self._on_remove = on_remove
        self._logger = logger or LOGGER
        self._dispatcher = TickDispatcher.from_notation(
            notation,
            duration,
            sink=self._emit,
            config=self._config,
            clock=clock,
            on_finished=self._finished,
            on_tick=self._progress,
        )
        self._tasks: set[asyncio.Task] = set()
        self._tick_task: asyncio.Task | None = None
        self._generation = 0
        self._pending_start: int | None = None
        self._closed = False
        self._done = asyncio.Event()

    @property
    def dispatcher(self) -> TickDispatcher:
        return self._dispatcher

    @property
    def state(self) -> str:
        return self._dispatcher.state

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> dict[str, Any]:
        dispatcher = self._dispatcher
        return {
            "state": dispatcher.state,
            "duration_ms": dispatcher.duration_ms,
            "remaining_ms": dispatcher.remaining_ms,
            "progress": round(dispatcher.progress, 4),
            "display": dispatcher.display,
        }

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._closed:
            raise DispatcherError("Countdown runner is closed")
        dispatcher = self._dispatcher
        if dispatcher.state == "running":
            return
        if dispatcher.state == "finished":
            self._logger.debug("Countdown already finished; use restart")
            return
        if dispatcher.state == "idle" and dispatcher.duration_ms <= 0:
            raise DispatcherError("Cannot start a countdown with no duration")
        if dispatcher.state == "idle" and self._config.say_start:
            if self._pending_start == self._generation:
                return
            generation = self._pending_start = self._generation
            self._speak_later(self._config.start_text)
            try:
                await asyncio.sleep(self._config.pre_speak_start_ms / 1000)
            finally:
                if self._pending_start == generation:
                    self._pending_start = None
            if not self._alive(generation):
                return
        self._done.clear()
        dispatcher.start()
        self._publish_state()
        self._ensure_ticking()

    def pause(self) -> None:
        if self._dispatcher.state != "running":
            return
        self._dispatcher.pause()
        self._stop_ticking()
        self._publish_state()

    def resume(self) -> None:
        if self._dispatcher.state != "paused":
            return
        self._dispatcher.resume()
        self._publish_state()
        self._ensure_ticking()

    def reset(self) -> None:
        self._generation += 1
        self._stop_ticking()
        self._dispatcher.reset()
        self._publish_state()

    async def restart(self) -> None:
        self.reset()
        await self.start()

    def reconfigure(self, notation: str | None, duration: int | str) -> None:
        """Swap notation and duration; the countdown returns to idle."""
        self._generation += 1
        self._stop_ticking()
        self._dispatcher.reconfigure(notation, duration)
        self._publish_state()

    async def wait_finished(self) -> None:
        """Wait until the end sequence (speech, chime, removal or reset) has completed."""
        await self._done.wait()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._stop_ticking()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._done.set()

    async def handle_command(self, payload: str) -> None:
        """Apply a remote control command.

        Accepts a bare word (``"pause"``) or JSON such as
        ``{"command": "configure", "say": "1/4 last10", "duration": "5:00"}``.
        """
        command, args = _parse_command(payload)
        if command not in COMMANDS:
            self._logger.warning("[control] Ignoring unknown command: %r", payload)
            return
        self._logger.info("[control] %s", command)
        try:
            if command == "start":
                await self.start()
            elif command == "pause":
                self.pause()
            elif command == "resume":
                self.resume()
            elif command == "reset":
                self.reset()
            elif command == "restart":
                await self.restart()
            elif command == "configure":
                duration = args.get("duration", self._dispatcher.duration_ms)
                self.reconfigure(args.get("say"), duration)
        except (DispatcherError, ValueError) as exc:
            self._logger.warning("[control] %s failed: %s", command, exc)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_ticking(self) -> None:
        if self._tick_task and not self._tick_task.done():
            return
        self._tick_task = asyncio.create_task(self._tick_loop())

    def _stop_ticking(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task and not task.done():
            task.cancel()

    async def _tick_loop(self) -> None:
        interval = self._config.tick_interval_ms / 1000
        while not self._closed and self._dispatcher.state == "running":
            self._dispatcher.tick()
            if self._dispatcher.state != "running":
                break
            await asyncio.sleep(interval)

    def _emit(self, message: str) -> None:
        if self._on_announcement:
            self._on_announcement(message)
        self._speak_later(message)

    def _speak_later(self, text: str) -> None:
        self._track(asyncio.create_task(self._speak(text)))

    async def _speak(self, text: str) -> None:
        try:
            await self._speaker.speak(text)
        except Exception as exc:
            self._logger.warning("[speak] Failed to speak %r: %s", text, exc)

    def _progress(self, dispatcher: TickDispatcher) -> None:
        if self._on_progress:
            self._on_progress(dispatcher)

    def _finished(self) -> None:
        self._publish_state()
        self._track(asyncio.create_task(self._end_sequence(self._generation)))

    async def _end_sequence(self, generation: int) -> None:
        config = self._config
        loop = asyncio.get_running_loop()
        finished_at = loop.time()

        if config.say_end:
            self._speak_later(config.end_text)
        if config.end_chime:
            chime_delay = config.pre_speak_end_ms if config.say_end else 0
            await asyncio.sleep(chime_delay / 1000)
            if not self._alive(generation):
                return
            try:
                await asyncio.to_thread(self._chime)
            except Exception as exc:
                self._logger.warning("[audio] End chime failed: %s", exc)

        if config.auto_destruct_ms is not None:
            delay_ms = max(config.auto_destruct_ms, config.chime_delay_ms)
            await self._sleep_until(finished_at + delay_ms / 1000)
            if not self._alive(generation):
                return
            self._logger.info("Countdown removing itself")
            if self._on_remove:
                self._on_remove()
        elif config.auto_reset:
            await self._sleep_until(finished_at + config.chime_delay_ms / 1000)
            if not self._alive(generation):
                return
            self.reset()
        self._done.set()

    async def _sleep_until(self, deadline: float) -> None:
        delay = deadline - asyncio.get_running_loop().time()
        if delay > 0:
            await asyncio.sleep(delay)

    def _alive(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _publish_state(self) -> None:
        if self._on_state:
            self._on_state(self.snapshot())

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)

        def _cleanup(_task: asyncio.Task) -> None:
            self._tasks.discard(_task)

        task.add_done_callback(_cleanup)


def _parse_command(payload: str) -> tuple[str, dict[str, Any]]:
    text = (payload or "").strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return "", {}
        if not isinstance(data, dict):
            return "", {}
        return str(data.get("command") or "").strip().lower(), data
    return text.lower(), {}
