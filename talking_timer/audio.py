"""End-of-countdown chime and local audio helpers."""

from __future__ import annotations

import logging
import math
import os
import shutil
import subprocess  # nosec B404 - subprocess used for pactl/player interactions
import wave
from pathlib import Path

_LOGGER = logging.getLogger("talking_timer.audio")
_CHIME_FILENAME = "talking-timer-chime.wav"
_SAMPLE_RATE = 48_000
_TONE_SECONDS = 0.75
_TONE_SPACING_SECONDS = 0.425
_TONE_FLOOR = 0.00001
_TONE_AMPLITUDE = 14_000
_FADE_IN_SECONDS = 0.01
CHIME_TONES_HZ: tuple[float, ...] = (
    440,
    261.6,
    830.6,
    440,
    261.6,
    830.6,
    392,
    440,
    261.6,
    830.6,
    440,
    261.6,
    830.6,
    392,
    440,
)


def _runtime_env() -> dict[str, str]:
    env = os.environ.copy()
    env.setdefault("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")
    return env


def _run_pactl(args: list[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(  # nosec B603 B607 - hardcoded command array
            ["pactl", *args],
            capture_output=True,
            text=True,
            check=True,
            env=_runtime_env(),
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as exc:
        _LOGGER.debug("[audio] pactl %s failed: %s", " ".join(args), exc)
        return None


def chime_sample_path() -> Path:
    runtime_dir = Path(_runtime_env()["XDG_RUNTIME_DIR"])
    return runtime_dir / _CHIME_FILENAME


def chime_samples(tones: tuple[float, ...] = CHIME_TONES_HZ, sample_rate: int = _SAMPLE_RATE) -> list[int]:
    """Mix the chime tones into signed 16-bit samples.

    Each tone decays exponentially to near silence over its length and starts
    a fixed spacing after the previous one, so neighbouring tones overlap.
    """
    tone_samples = round(sample_rate * _TONE_SECONDS)
    spacing = round(sample_rate * _TONE_SPACING_SECONDS)
    fade_in = max(1, int(sample_rate * _FADE_IN_SECONDS))
    total = spacing * (len(tones) - 1) + tone_samples if tones else 0
    mix = [0.0] * total
    for index, frequency in enumerate(tones):
        start = index * spacing
        for i in range(tone_samples):
            t = i / sample_rate
            gain = min(1.0, i / fade_in) * _TONE_FLOOR ** (t / _TONE_SECONDS)
            mix[start + i] += gain * _TONE_AMPLITUDE * math.sin(2 * math.pi * frequency * t)
    return [max(-32768, min(32767, int(value))) for value in mix]


def render_chime_sample(destination: Path) -> Path | None:
    """Render the end chime to a mono 16-bit WAV file."""
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        frames = b"".join(value.to_bytes(2, byteorder="little", signed=True) for value in chime_samples())
        with wave.open(str(destination), "wb") as wav_file:
            wav_file.setnchannels(1)
            wav_file.setsampwidth(2)
            wav_file.setframerate(_SAMPLE_RATE)
            wav_file.writeframes(frames)
        return destination
    except OSError as exc:
        _LOGGER.debug("[audio] Unable to create chime sample at %s: %s", destination, exc)
        return None


def ensure_chime_sample() -> Path | None:
    path = chime_sample_path()
    if path.exists():
        return path
    return render_chime_sample(path)


def find_audio_sink() -> str | None:
    """Return the default PulseAudio/PipeWire sink, or any non-monitor sink."""
    result = _run_pactl(["get-default-sink"])
    if result:
        default_sink = result.stdout.strip()
        if default_sink:
            return default_sink

    result = _run_pactl(["list", "sinks", "short"])
    if result:
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) > 1 and not parts[1].endswith(".monitor"):
                _LOGGER.debug("[audio] Using fallback sink: %s", parts[1])
                return parts[1]
    _LOGGER.debug("[audio] No audio sinks detected")
    return None


def play_sample(sample_path: Path | None) -> bool:
    """Play a WAV file with the first available player."""
    if not sample_path or not sample_path.exists():
        return False
    player = next((candidate for candidate in ("pw-play", "aplay") if shutil.which(candidate)), None)
    if not player:
        _LOGGER.debug("[audio] No audio player available")
        return False
    try:
        subprocess.run(  # nosec B603 - hardcoded command array
            [player, str(sample_path)],
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env=_runtime_env(),
        )
    except OSError as exc:
        _LOGGER.debug("[audio] Failed to play sample: %s", exc)
        return False
    return True


def play_end_chime(sound_path: Path | None = None) -> bool:
    """Play a custom end sound if it exists, otherwise the generated chime."""
    if sound_path and sound_path.exists():
        return play_sample(sound_path)
    return play_sample(ensure_chime_sample())
