"""Configuration helpers for the talking countdown.

Values resolve in this order: explicit arguments (``TimerConfig(...)`` or
``with_overrides``), then ``TALKING_TIMER_*`` environment variables read by
``from_env``, then the defaults declared below.
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from talking_timer.utils import parse_bool, parse_int, split_csv

Priority = Literal["fraction", "time", "order"]
PRIORITIES = {"fraction", "time", "order"}

DEFAULT_SAY = "1/2 30s last20 last15 allLast10"
DEFAULT_START_TEXT = "Ready. Set. Go!"
DEFAULT_END_TEXT = "Time's up!"
DEFAULT_AUTO_DESTRUCT_MS = 10_000
MAX_AUTO_DESTRUCT_SECONDS = 43_200


def _strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class LeadBand:
    """Speech started ``lead_ms`` early while remaining time is at most ``remaining_ms``."""

    remaining_ms: int
    lead_ms: int


DEFAULT_LEAD_BANDS: tuple[LeadBand, ...] = (
    LeadBand(remaining_ms=10_000, lead_ms=200),
    LeadBand(remaining_ms=19_999, lead_ms=600),
    LeadBand(remaining_ms=86_400_000, lead_ms=1_200),
)


@dataclass(frozen=True)
class Suffixes:
    first: str = " gone."
    last: str = " to go."
    half: str = "Half way."

    def for_relative(self, relative: str) -> str:
        return self.first if relative == "first" else self.last


@dataclass(frozen=True)
class TimerConfig:
    priority: Priority = "fraction"
    lead_bands: tuple[LeadBand, ...] = DEFAULT_LEAD_BANDS
    pre_speak_start_ms: int = 2_300
    pre_speak_end_ms: int = 3_300
    chime_delay_ms: int = 5_000
    suffixes: Suffixes = field(default_factory=Suffixes)
    tick_interval_ms: int = 20
    say_default: str = DEFAULT_SAY
    start_text: str = DEFAULT_START_TEXT
    end_text: str = DEFAULT_END_TEXT
    say_start: bool = False
    say_end: bool = True
    end_chime: bool = True
    auto_reset: bool = False
    auto_destruct_ms: int | None = None

    def with_overrides(self, **overrides: Any) -> TimerConfig:
        """Return a copy with the given non-None fields replaced."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if "priority" in values:
            values["priority"] = _normalize_choice(values["priority"], PRIORITIES, self.priority)
        return replace(self, **values)

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> TimerConfig:
        source = env if env is not None else os.environ
        defaults = TimerConfig()
        suffixes = Suffixes(
            first=source.get("TALKING_TIMER_SUFFIX_FIRST", defaults.suffixes.first),
            last=source.get("TALKING_TIMER_SUFFIX_LAST", defaults.suffixes.last),
            half=source.get("TALKING_TIMER_SUFFIX_HALF", defaults.suffixes.half),
        )
        return TimerConfig(
            priority=_normalize_choice(source.get("TALKING_TIMER_PRIORITY"), PRIORITIES, defaults.priority),
            lead_bands=parse_lead_bands(source.get("TALKING_TIMER_LEAD_BANDS")) or defaults.lead_bands,
            pre_speak_start_ms=max(0, parse_int(source.get("TALKING_TIMER_PRE_SPEAK_START_MS"), 2_300)),
            pre_speak_end_ms=max(0, parse_int(source.get("TALKING_TIMER_PRE_SPEAK_END_MS"), 3_300)),
            chime_delay_ms=max(0, parse_int(source.get("TALKING_TIMER_CHIME_DELAY_MS"), 5_000)),
            suffixes=suffixes,
            tick_interval_ms=max(1, parse_int(source.get("TALKING_TIMER_TICK_MS"), 20)),
            say_default=source.get("TALKING_TIMER_SAY", defaults.say_default),
            start_text=_strip_or_none(source.get("TALKING_TIMER_START_TEXT")) or defaults.start_text,
            end_text=_strip_or_none(source.get("TALKING_TIMER_END_TEXT")) or defaults.end_text,
            say_start=parse_bool(source.get("TALKING_TIMER_SAY_START"), False),
            say_end=parse_bool(source.get("TALKING_TIMER_SAY_END"), True),
            end_chime=parse_bool(source.get("TALKING_TIMER_END_CHIME"), True),
            auto_reset=parse_bool(source.get("TALKING_TIMER_AUTO_RESET"), False),
            auto_destruct_ms=parse_auto_destruct(source.get("TALKING_TIMER_SELF_DESTRUCT")),
        )


@dataclass(frozen=True)
class WyomingEndpoint:
    host: str
    port: int
    model: str | None = None


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class HomeAssistantConfig:
    base_url: str | None
    token: str | None
    verify_ssl: bool
    tts_entity: str | None
    media_player_entity: str | None


@dataclass(frozen=True)
class AnnouncerConfig:
    hostname: str
    timer: TimerConfig
    tts_endpoint: WyomingEndpoint | None
    tts_voice: str | None
    mqtt: MqttConfig
    home_assistant: HomeAssistantConfig

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AnnouncerConfig:
        source = env if env is not None else os.environ
        hostname = source.get("TALKING_TIMER_HOSTNAME") or socket.gethostname()

        tts_endpoint = None
        tts_host = _strip_or_none(source.get("WYOMING_PIPER_HOST"))
        if tts_host:
            tts_endpoint = WyomingEndpoint(
                host=tts_host,
                port=parse_int(source.get("WYOMING_PIPER_PORT"), 10200),
            )

        topic_base = source.get("TALKING_TIMER_TOPIC_BASE") or f"talking-timer/{hostname}"
        mqtt = MqttConfig(
            host=_strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=_strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")),
            password=_strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")),
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=_strip_or_none(source.get("MQTT_CERT")),
            key=_strip_or_none(source.get("MQTT_KEY")),
            ca_cert=_strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=topic_base.rstrip("/"),
        )

        ha_base_url = _strip_or_none(source.get("HOME_ASSISTANT_BASE_URL"))
        if ha_base_url:
            ha_base_url = ha_base_url.rstrip("/")
        home_assistant = HomeAssistantConfig(
            base_url=ha_base_url,
            token=_strip_or_none(source.get("HOME_ASSISTANT_TOKEN")),
            verify_ssl=parse_bool(source.get("HOME_ASSISTANT_VERIFY_SSL"), True),
            tts_entity=_strip_or_none(source.get("HOME_ASSISTANT_TTS_ENTITY")),
            media_player_entity=_strip_or_none(source.get("HOME_ASSISTANT_MEDIA_PLAYER")),
        )

        return AnnouncerConfig(
            hostname=hostname,
            timer=TimerConfig.from_env(source),
            tts_endpoint=tts_endpoint,
            tts_voice=_strip_or_none(source.get("TALKING_TIMER_TTS_VOICE")),
            mqtt=mqtt,
            home_assistant=home_assistant,
        )


def parse_lead_bands(value: str | None) -> tuple[LeadBand, ...]:
    """Parse "remaining:lead" pairs such as "10000:200,19999:600"."""
    bands: list[LeadBand] = []
    for item in split_csv(value):
        remaining, sep, lead = item.partition(":")
        if not sep:
            continue
        try:
            band = LeadBand(remaining_ms=int(remaining), lead_ms=int(lead))
        except ValueError:
            continue
        if band.remaining_ms <= 0 or band.lead_ms < 0:
            continue
        bands.append(band)
    return tuple(sorted(bands, key=lambda band: band.remaining_ms))


def parse_auto_destruct(value: str | None) -> int | None:
    """Interpret the self-destruct setting.

    Unset disables it, a positive whole number of seconds (capped at 12 hours)
    sets the delay, anything else falls back to ten seconds.
    """
    if value is None:
        return None
    cleaned = value.strip()
    if cleaned.isascii() and cleaned.isdigit() and not cleaned.startswith("0"):
        return min(int(cleaned), MAX_AUTO_DESTRUCT_SECONDS) * 1000
    return DEFAULT_AUTO_DESTRUCT_MS


def _normalize_choice(value: str | None, allowed: set[str], default: str) -> Any:
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in allowed:
        return lowered
    return default
