"""Speak countdown announcements through a Wyoming TTS (Piper) service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, aclosing

from wyoming.audio import AudioChunk, AudioStart, AudioStop
from wyoming.client import AsyncTcpClient
from wyoming.tts import Synthesize, SynthesizeVoice

from talking_timer.utils import await_with_timeout

from .audio import PcmSink
from .config import WyomingEndpoint

LoggerLike = logging.Logger | None


async def play_tts_stream(
    text: str,
    *,
    endpoint: WyomingEndpoint,
    sink: PcmSink,
    voice_name: str | None = None,
    audio_guard: AbstractAsyncContextManager[None] | None = None,
    timeout: float | None = None,
    logger: LoggerLike = None,
) -> None:
    """Synthesize speech via Wyoming TTS and stream it directly to the provided sink.

    ``audio_guard`` (usually an ``asyncio.Lock``) keeps two announcements from
    opening the player at the same time.
    """

    async def _play() -> None:
        started = False
        chunks = 0
        events = _tts_event_stream(text, endpoint=endpoint, voice_name=voice_name, timeout=timeout)
        try:
            async with aclosing(events):
                async for event in events:
                    if AudioStart.is_type(event.type):
                        audio_start = AudioStart.from_event(event)
                        await sink.start(audio_start.rate, audio_start.width, audio_start.channels)
                        started = True
                    elif AudioChunk.is_type(event.type):
                        chunk = AudioChunk.from_event(event)
                        await sink.write(chunk.audio)
                        chunks += 1
                    elif AudioStop.is_type(event.type):
                        break
        finally:
            if started:
                await sink.stop()
            if logger:
                logger.debug("[tts] Spoke %r in %d chunks", text, chunks)

    if audio_guard is None:
        await _play()
    else:
        async with audio_guard:
            await _play()


async def probe_synthesize(
    *,
    endpoint: WyomingEndpoint,
    text: str,
    voice_name: str | None = None,
    timeout: float | None = None,
) -> tuple[bool, int]:
    """Synthesize speech and report whether audio started plus how many chunks arrived."""

    started = False
    chunks = 0
    async with aclosing(_tts_event_stream(text, endpoint=endpoint, voice_name=voice_name, timeout=timeout)) as events:
        async for event in events:
            if AudioStart.is_type(event.type):
                started = True
            elif AudioChunk.is_type(event.type):
                chunks += 1
            elif AudioStop.is_type(event.type):
                break
    return started, chunks


async def _tts_event_stream(
    text: str,
    *,
    endpoint: WyomingEndpoint,
    voice_name: str | None = None,
    timeout: float | None = None,
) -> AsyncIterator[object]:
    client = AsyncTcpClient(endpoint.host, endpoint.port)
    await await_with_timeout(client.connect(), timeout)
    voice = SynthesizeVoice(name=voice_name) if voice_name else None
    try:
        await await_with_timeout(client.write_event(Synthesize(text=text, voice=voice).event()), timeout)
        while True:
            event = await await_with_timeout(client.read_event(), timeout)
            if event is None:
                break
            yield event
            if AudioStop.is_type(event.type):
                break
    finally:
        await client.disconnect()
