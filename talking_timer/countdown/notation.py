"""Announcement notation parser.

Turns strings such as ``"1/2 30s last20 allLast10 every-first-5m"`` into typed
interval directives. Each whitespace separated token is scanned on its own::

    token    := prefix? [count relative | count | relative]? body
    prefix   := "all" | "every"
    relative := "first" | "last"
    body     := quantity unit? | numerator? "/" denominator | unit-word

Parts may be joined by ``_`` or ``-``. Tokens that do not fit the grammar are
skipped, so a bad token never prevents the rest of the notation from loading.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

DirectiveKind = Literal["time", "fraction"]
Relative = Literal["none", "first", "last"]
TimeUnit = Literal["s", "m", "h"]

UNIT_MS: dict[str, int] = {"s": 1_000, "m": 60_000, "h": 3_600_000}

_UNIT_WORDS: dict[str, TimeUnit] = {
    "s": "s",
    "sec": "s",
    "secs": "s",
    "second": "s",
    "seconds": "s",
    "m": "m",
    "min": "m",
    "mins": "m",
    "minute": "m",
    "minutes": "m",
    "h": "h",
    "hr": "h",
    "hrs": "h",
    "hour": "h",
    "hours": "h",
}
_SEPARATORS = "_-"
MIN_DENOMINATOR = 2
MAX_DENOMINATOR = 10

LOGGER = logging.getLogger("talking_timer.notation")


@dataclass(frozen=True)
class IntervalDirective:
    """One parsed notation token describing a family of announcements."""

    kind: DirectiveKind
    raw: str
    relative: Relative = "none"
    repeat_all: bool = False
    every: bool = False
    multiplier: int = 1
    quantity: int = 0
    unit: TimeUnit = "s"
    denominator: int = 0

    @property
    def is_fraction(self) -> bool:
        return self.kind == "fraction"

    @property
    def unit_ms(self) -> int:
        return UNIT_MS[self.unit]

    @property
    def interval_ms(self) -> int:
        return self.quantity * self.unit_ms


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if not self.at_end() else ""

    def skip_separator(self) -> bool:
        if self.peek() and self.peek() in _SEPARATORS:
            self.pos += 1
            return True
        return False

    def take_word(self, *words: str) -> str | None:
        for word in words:
            if self.text.startswith(word, self.pos):
                self.pos += len(word)
                return word
        return None

    def take_digits(self) -> str:
        start = self.pos
        while self.peek().isascii() and self.peek().isdigit():
            self.pos += 1
        return self.text[start : self.pos]

    def rest(self) -> str:
        remainder = self.text[self.pos :]
        self.pos = len(self.text)
        return remainder


def parse_notation(notation: str | None) -> tuple[IntervalDirective, ...]:
    """Parse a full notation string, dropping tokens that do not match."""
    if not notation:
        return ()
    directives: list[IntervalDirective] = []
    for token in notation.split():
        directive = parse_token(token)
        if directive is None:
            LOGGER.debug("Ignoring unrecognised announcement token %r", token)
            continue
        directives.append(directive)
    return tuple(directives)


def parse_token(token: str) -> IntervalDirective | None:  # noqa: PLR0911
    """Parse a single notation token, returning None when it does not match."""
    scanner = _Scanner(token.strip().lower())
    if scanner.at_end():
        return None

    prefix = scanner.take_word("every", "all")
    if prefix:
        scanner.skip_separator()

    # "3last20" keeps its count. "3_20s" has no edge to count from, so the count is
    # dropped and the token repeats symmetrically. "120" and "30s" stay one quantity.
    checkpoint = scanner.pos
    count_digits = scanner.take_digits()
    separated = bool(count_digits) and scanner.skip_separator()
    relative_word = scanner.take_word("first", "last")
    dropped_count = False
    if relative_word:
        scanner.skip_separator()
    elif separated and scanner.peek().isascii() and scanner.peek().isdigit():
        dropped_count = True
        count_digits = ""
    elif count_digits:
        scanner.pos = checkpoint
        count_digits = ""
    relative: Relative = relative_word or "none"  # type: ignore[assignment]
    count = int(count_digits) if count_digits else None
    if count == 0:
        return None

    every = prefix == "every" and relative != "none"
    symmetric_default = prefix == "all" or (prefix == "every" and relative == "none") or dropped_count

    quantity_digits = scanner.take_digits()
    if scanner.peek() == "/":
        scanner.pos += 1
        denominator_digits = scanner.take_digits()
        if not scanner.at_end() or not denominator_digits:
            return None
        numerator = int(quantity_digits) if quantity_digits else 1
        denominator = int(denominator_digits)
        if numerator < 1 or not MIN_DENOMINATOR <= denominator <= MAX_DENOMINATOR:
            return None
        repeat_all = symmetric_default or relative == "none"
        explicit = count or (numerator if numerator > 1 else 0)
        if every:
            multiplier = 0
        elif explicit:
            multiplier = min(explicit, denominator - 1)
        elif repeat_all:
            multiplier = 0
        else:
            multiplier = 1
        return IntervalDirective(
            kind="fraction",
            raw=token,
            relative=relative,
            repeat_all=repeat_all and not every,
            every=every,
            multiplier=multiplier,
            denominator=denominator,
        )

    bare_unit = not quantity_digits
    if quantity_digits:
        scanner.skip_separator()
    unit_word = scanner.rest()
    if not unit_word:
        if bare_unit:
            return None
        unit: TimeUnit = "s"
    elif unit_word in _UNIT_WORDS:
        unit = _UNIT_WORDS[unit_word]
    else:
        return None
    quantity = int(quantity_digits) if quantity_digits else 1
    if quantity < 1:
        return None

    repeat_all = (symmetric_default or bare_unit) and not every
    return IntervalDirective(
        kind="time",
        raw=token,
        relative=relative,
        repeat_all=repeat_all,
        every=every,
        multiplier=0 if (every or repeat_all) else (count or 1),
        quantity=quantity,
        unit=unit,
    )
