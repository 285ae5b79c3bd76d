from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from .errors import InvalidWindowError

_ZERO = timedelta(0)


@dataclass(frozen=True, order=True)
class TimeWindow:
    """Half-open UTC interval ``[start, end)``.

    Both bounds must be timezone-aware; they are normalized to UTC on
    construction so that equality and hashing compare instants.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidWindowError("window bounds must be timezone-aware")
        if self.start >= self.end:
            raise InvalidWindowError("window start must be earlier than end")
        object.__setattr__(self, "start", self.start.astimezone(timezone.utc))
        object.__setattr__(self, "end", self.end.astimezone(timezone.utc))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and other.end <= self.end

    def padded(self, before: timedelta = _ZERO, after: timedelta = _ZERO) -> "TimeWindow":
        """Return the window widened by ``before`` and ``after``."""
        if before < _ZERO or after < _ZERO:
            raise InvalidWindowError("padding must not be negative")
        return TimeWindow(self.start - before, self.end + after)


def intersect(a: TimeWindow, b: TimeWindow) -> Optional[TimeWindow]:
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if start >= end:
        return None
    return TimeWindow(start, end)


def subtract(a: TimeWindow, b: TimeWindow) -> list[TimeWindow]:
    """Remove ``b`` from ``a``; returns zero, one or two pieces."""
    if not a.overlaps(b):
        return [a]
    pieces: list[TimeWindow] = []
    if a.start < b.start:
        pieces.append(TimeWindow(a.start, b.start))
    if b.end < a.end:
        pieces.append(TimeWindow(b.end, a.end))
    return pieces


def merge_overlapping(windows: Iterable[TimeWindow]) -> list[TimeWindow]:
    """Sort windows and join the ones that overlap.

    Windows that only touch (``a.end == b.start``) stay separate.
    """
    merged: list[TimeWindow] = []
    for window in sorted(windows):
        if merged and merged[-1].overlaps(window):
            last = merged[-1]
            if window.end > last.end:
                merged[-1] = TimeWindow(last.start, window.end)
            continue
        merged.append(window)
    return merged


def join_adjacent(windows: Iterable[TimeWindow]) -> list[TimeWindow]:
    """Like merge_overlapping, but also joins windows that only touch."""
    joined: list[TimeWindow] = []
    for window in merge_overlapping(windows):
        if joined and joined[-1].end == window.start:
            joined[-1] = TimeWindow(joined[-1].start, window.end)
            continue
        joined.append(window)
    return joined


def intersect_all(xs: Iterable[TimeWindow], ys: Iterable[TimeWindow]) -> list[TimeWindow]:
    """Pairwise intersection of two window lists, returned merged."""
    left = merge_overlapping(xs)
    right = merge_overlapping(ys)
    result: list[TimeWindow] = []
    i = j = 0
    while i < len(left) and j < len(right):
        common = intersect(left[i], right[j])
        if common is not None:
            result.append(common)
        if left[i].end <= right[j].end:
            i += 1
        else:
            j += 1
    return result


def subtract_all(windows: Iterable[TimeWindow], holes: Iterable[TimeWindow]) -> list[TimeWindow]:
    merged_holes = merge_overlapping(holes)
    remaining: list[TimeWindow] = []
    for window in merge_overlapping(windows):
        pieces = [window]
        for hole in merged_holes:
            if hole.start >= window.end:
                break
            if hole.end <= window.start:
                continue
            pieces = [piece for current in pieces for piece in subtract(current, hole)]
        remaining.extend(pieces)
    return remaining


def clip(windows: Iterable[TimeWindow], bounds: TimeWindow) -> list[TimeWindow]:
    clipped: list[TimeWindow] = []
    for window in windows:
        common = intersect(window, bounds)
        if common is not None:
            clipped.append(common)
    return clipped
