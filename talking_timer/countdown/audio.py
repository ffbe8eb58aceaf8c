"""Raw PCM playback for synthesized announcements."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
from asyncio.subprocess import Process

from talking_timer import audio as timer_audio

PLAYER_CANDIDATES = ("pw-play", "paplay", "aplay")


class PcmSink:
    """Stream PCM audio into ``pw-play``/``paplay``/``aplay``."""

    def __init__(self, binary: str | None = None, logger: logging.Logger | None = None) -> None:
        env_override = os.environ.get("TALKING_TIMER_AUDIO_PLAYER")
        if binary is None and env_override:
            binary = env_override
        self.binary = binary or "auto"
        self._proc: Process | None = None
        self._logger = logger or logging.getLogger(__name__)

    @property
    def active(self) -> bool:
        return self._proc is not None

    async def start(self, rate: int, width: int, channels: int) -> None:
        await self.stop()
        player = resolve_player(self.binary, self._logger)
        try:
            cmd = build_player_command(player, rate, width, channels)
        except ValueError as exc:
            self._logger.warning("[audio] %s cannot play width=%s (%s); using aplay", player, width, exc)
            player = "aplay"
            cmd = build_player_command(player, rate, width, channels)
        env = os.environ.copy()
        sink = timer_audio.find_audio_sink()
        if sink:
            env["PULSE_SINK"] = sink
        self._logger.debug("[audio] Starting playback: %s", " ".join(cmd))
        self._proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )

    async def write(self, chunk: bytes) -> None:
        if not self._proc or not self._proc.stdin:
            raise RuntimeError("Playback is not active")
        try:
            self._proc.stdin.write(chunk)
            await self._proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            await self.stop()
            raise RuntimeError("Playback process exited unexpectedly") from exc

    async def stop(self) -> None:
        if not self._proc:
            return
        self._logger.debug("[audio] Stopping playback")
        if self._proc.stdin:
            self._proc.stdin.close()
            with contextlib.suppress(BrokenPipeError):
                await self._proc.stdin.wait_closed()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._proc.wait(), timeout=2)
        self._proc = None


def _player_available(binary: str) -> bool:
    if os.path.isabs(binary):
        return os.access(binary, os.X_OK)
    return shutil.which(binary) is not None


def resolve_player(preferred: str, logger: logging.Logger) -> str:
    if preferred != "auto":
        if _player_available(preferred):
            return preferred
        logger.warning("[audio] Requested player '%s' not found; falling back to auto-detection", preferred)
    for candidate in PLAYER_CANDIDATES:
        if _player_available(candidate):
            return candidate
    return "aplay"


def build_player_command(player: str, rate: int, width: int, channels: int) -> list[str]:
    if player == "pw-play":
        fmt = {1: "s8", 2: "s16", 4: "s32"}.get(width)
        if not fmt:
            raise ValueError(f"pw-play has no format for width={width}")
        return ["pw-play", "--raw", "--rate", str(rate), "--channels", str(channels), "--format", fmt, "-"]
    if player == "paplay":
        fmt = {1: "s8", 2: "s16le", 3: "s24le", 4: "s32le"}.get(width, "s16le")
        return ["paplay", "--raw", "--rate", str(rate), "--channels", str(channels), f"--format={fmt}", "-"]
    fmt = {1: "U8", 2: "S16_LE", 3: "S24_LE", 4: "S32_LE"}.get(width, "S16_LE")
    return ["aplay", "-q", "-t", "raw", "-f", fmt, "-c", str(channels), "-r", str(rate), "-"]
