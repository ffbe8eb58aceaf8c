"""Outputs that turn announcement text into something a person can hear or see."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from .audio import PcmSink
from .config import AnnouncerConfig, WyomingEndpoint
from .home_assistant import HomeAssistantClient
from .mqtt import TimerMqtt
from .wyoming import play_tts_stream

LOGGER = logging.getLogger("talking_timer.speakers")


class Speaker(Protocol):
    async def speak(self, text: str) -> None: ...


class LogSpeaker:
    """Write announcements to the log (the ``--dry-run``/headless output)."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER

    async def speak(self, text: str) -> None:
        self._logger.info("[speak] %s", text)


class WyomingSpeaker:
    def __init__(
        self,
        endpoint: WyomingEndpoint,
        *,
        sink: PcmSink | None = None,
        voice_name: str | None = None,
        timeout: float | None = 15.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.voice_name = voice_name
        self._sink = sink or PcmSink(logger=logger)
        self._timeout = timeout
        self._logger = logger or LOGGER
        self._guard = asyncio.Lock()

    async def speak(self, text: str) -> None:
        await play_tts_stream(
            text,
            endpoint=self.endpoint,
            sink=self._sink,
            voice_name=self.voice_name,
            audio_guard=self._guard,
            timeout=self._timeout,
            logger=self._logger,
        )


class MqttAnnouncer:
    """Publish each announcement as JSON so dashboards and other speakers can follow along."""

    def __init__(self, mqtt: TimerMqtt) -> None:
        self._mqtt = mqtt

    async def speak(self, text: str) -> None:
        self._mqtt.publish_announcement(text)


class HomeAssistantSpeaker:
    def __init__(self, client: HomeAssistantClient) -> None:
        self._client = client

    async def speak(self, text: str) -> None:
        await self._client.speak(text)


class FanoutSpeaker:
    """Speak through every configured output; one failing output does not silence the rest."""

    def __init__(self, speakers: Sequence[Speaker], logger: logging.Logger | None = None) -> None:
        self.speakers = tuple(speakers)
        self._logger = logger or LOGGER

    async def speak(self, text: str) -> None:
        if not self.speakers:
            return
        results = await asyncio.gather(*(speaker.speak(text) for speaker in self.speakers), return_exceptions=True)
        for speaker, result in zip(self.speakers, results, strict=True):
            if isinstance(result, Exception):
                self._logger.warning("[speak] %s failed to speak %r: %s", type(speaker).__name__, text, result)


def build_speaker(
    config: AnnouncerConfig,
    *,
    mqtt: TimerMqtt | None = None,
    ha_client: HomeAssistantClient | None = None,
    logger: logging.Logger | None = None,
) -> FanoutSpeaker:
    """Assemble every output the configuration enables; the log speaker is always present."""
    speakers: list[Speaker] = [LogSpeaker(logger)]
    if config.tts_endpoint:
        speakers.append(WyomingSpeaker(config.tts_endpoint, voice_name=config.tts_voice, logger=logger))
    ha = config.home_assistant
    if ha_client and ha.tts_entity and ha.media_player_entity:
        speakers.append(HomeAssistantSpeaker(ha_client))
    if mqtt:
        speakers.append(MqttAnnouncer(mqtt))
    return FanoutSpeaker(speakers, logger=logger)
