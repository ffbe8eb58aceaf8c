"""Build the ordered announcement schedule for one countdown run."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator, Sequence

from .config import Priority, Suffixes
from .notation import IntervalDirective
from .offsets import Announcement, expand_directive

CLOSENESS_WINDOW_MS = 5_000
DENSE_TAIL_MS = 30_000

ExpandedDirective = tuple[IntervalDirective, Sequence[Announcement]]


class Schedule:
    """Announcements ordered by descending offset; consumed from the head."""

    def __init__(self, announcements: Iterable[Announcement] = ()) -> None:
        self._items: deque[Announcement] = deque(announcements)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[Announcement]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"Schedule({list(self._items)!r})"

    def head(self) -> Announcement | None:
        return self._items[0] if self._items else None

    def pop(self) -> Announcement:
        return self._items.popleft()

    def offsets(self) -> list[int]:
        return [item.offset_ms for item in self._items]

    def copy(self) -> Schedule:
        return Schedule(self._items)


def merge_by_priority(expanded: Sequence[ExpandedDirective], priority: Priority = "fraction") -> list[Announcement]:
    """Flatten expanded directives in the order the closeness filter should see them.

    ``fraction`` and ``time`` put that kind of directive first so it wins
    collisions; ``order`` keeps the order the tokens were written in.
    """
    if priority == "order":
        return [item for _, items in expanded for item in items]
    fractions = [item for directive, items in expanded if directive.is_fraction for item in items]
    times = [item for directive, items in expanded if not directive.is_fraction for item in items]
    if priority == "time":
        return times + fractions
    return fractions + times


def _too_close_any(offset: int, accepted: Iterable[int]) -> bool:
    return any(previous - CLOSENESS_WINDOW_MS < offset < previous + CLOSENESS_WINDOW_MS for previous in accepted)


def filter_announcements(announcements: Iterable[Announcement], duration_ms: int) -> list[Announcement]:
    """Drop out-of-range, duplicate and crowded offsets, keeping the first seen."""
    accepted: list[int] = []
    seen: set[int] = set()
    kept: list[Announcement] = []
    for item in announcements:
        offset = item.offset_ms
        if offset <= 0 or offset >= duration_ms or offset in seen:
            continue
        if offset > DENSE_TAIL_MS and _too_close_any(offset, accepted):
            continue
        seen.add(offset)
        accepted.append(offset)
        kept.append(item)
    return kept


def sort_announcements(announcements: Iterable[Announcement]) -> list[Announcement]:
    return sorted(announcements, key=lambda item: item.offset_ms, reverse=True)


def build_schedule(announcements: Iterable[Announcement], duration_ms: int) -> Schedule:
    return Schedule(sort_announcements(filter_announcements(announcements, duration_ms)))


def compile_schedule(
    directives: Sequence[IntervalDirective],
    duration_ms: int,
    *,
    priority: Priority = "fraction",
    suffixes: Suffixes | None = None,
) -> Schedule:
    """Expand, prioritise, filter and sort a parsed notation for one duration."""
    expanded = [(directive, expand_directive(directive, duration_ms, suffixes)) for directive in directives]
    return build_schedule(merge_by_priority(expanded, priority), duration_ms)
