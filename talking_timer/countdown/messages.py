"""Spoken phrases for time and fraction announcements."""

from __future__ import annotations

from math import gcd

from talking_timer.time_codec import MS_PER_HOUR, MS_PER_MINUTE, MS_PER_SECOND

DEFAULT_HALF_PHRASE = "Half way."

SHORT_FORM_LIMIT_MS = 20_000
BARE_NUMBER_LIMIT_MS = 10_000

FRACTION_WORDS = {
    3: "third",
    4: "quarter",
    5: "fifth",
    6: "sixth",
    7: "seventh",
    8: "eighth",
    9: "ninth",
    10: "tenth",
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count > 1 else ''}"


def _round_seconds(milliseconds: int) -> int:
    return (int(milliseconds) + MS_PER_SECOND // 2) // MS_PER_SECOND


def format_time_message(offset_ms: int, suffix: str, force_suffix: bool = False) -> str:
    """Render a time offset as speech.

    Offsets of ten seconds or less come out as a bare number ("7") so the end of
    a countdown reads as a run of digits, unless ``force_suffix`` is set.
    """
    if offset_ms < SHORT_FORM_LIMIT_MS:
        seconds = _round_seconds(offset_ms)
        if force_suffix or offset_ms > BARE_NUMBER_LIMIT_MS:
            return _plural(seconds, "second") + suffix
        return str(seconds)

    # Whole seconds before splitting, so 119.8 s reads as "2 minutes".
    working = _round_seconds(offset_ms) * MS_PER_SECOND
    parts: list[str] = []
    hours, working = divmod(working, MS_PER_HOUR)
    if hours:
        parts.append(_plural(hours, "hour"))
    minutes, working = divmod(working, MS_PER_MINUTE)
    if minutes:
        parts.append(_plural(minutes, "minute"))
    seconds = working // MS_PER_SECOND
    if seconds:
        parts.append(_plural(seconds, "second"))
    return ", ".join(parts) + suffix


def format_fraction_message(numerator: int, denominator: int, half_phrase: str = DEFAULT_HALF_PHRASE) -> str:
    """Render ``numerator/denominator`` as "1 third", "3 quarters" and so on."""
    divisor = gcd(numerator, denominator) or 1
    numerator //= divisor
    denominator //= divisor
    if denominator == 2:
        return half_phrase
    word = FRACTION_WORDS.get(denominator)
    if word is None:
        raise ValueError(f"Unsupported fraction denominator: {denominator}")
    return _plural(numerator, word)
