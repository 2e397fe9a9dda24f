"""
Half-open interval algebra over integer minutes.

An interval ``[start, end)`` contains its start and excludes its end, so
touching intervals never overlap. Values are minutes of the day for the
per-day pipeline, but nothing here assumes a 0..1440 range.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Iterable, List

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class Interval:
    """
    Immutable half-open interval of minutes.

    Invariant: start <= end. Zero-length intervals are allowed.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Interval start {self.start} must not be after end {self.end}")

    @property
    def length(self) -> int:
        """Return the length in minutes."""
        return self.end - self.start

    def is_empty(self) -> bool:
        return self.start == self.end

    def __str__(self) -> str:
        return f"{format_minutes(self.start)}-{format_minutes(self.end)}"


def overlaps(a: Interval, b: Interval) -> bool:
    """Check whether two intervals share at least one minute."""
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    """Check whether ``inner`` lies entirely within ``outer``."""
    return outer.start <= inner.start and inner.end <= outer.end


def intersect(a: Interval, b: Interval) -> Interval | None:
    """
    Calculate the intersection of two intervals.
    Returns None if they do not overlap.
    """
    if not overlaps(a, b):
        return None
    return Interval(max(a.start, b.start), min(a.end, b.end))


def subtract(a: Interval, b: Interval) -> List[Interval]:
    """
    Remove ``b`` from ``a``.

    Returns zero, one or two intervals. Empty fragments are dropped, and an
    empty or non-overlapping ``b`` leaves ``a`` untouched.

    Example:
    a: 09:00 - 18:00
    b: 13:00 - 14:00
    Result: [09:00-13:00, 14:00-18:00]
    """
    if a.is_empty():
        return []
    if b.is_empty() or not overlaps(a, b):
        return [a]

    fragments: List[Interval] = []
    if a.start < b.start:
        fragments.append(Interval(a.start, b.start))
    if b.end < a.end:
        fragments.append(Interval(b.end, a.end))
    return fragments


def subtract_all(a: Interval, blockers: Iterable[Interval]) -> List[Interval]:
    """
    Subtract every blocker from ``a``, carrying the remaining fragments forward.

    The result is ordered by start time. Blockers may be given in any order
    and may overlap each other.
    """
    remaining: List[Interval] = [] if a.is_empty() else [a]

    for blocker in sorted(blockers):
        if not remaining:
            break
        next_remaining: List[Interval] = []
        for fragment in remaining:
            next_remaining.extend(subtract(fragment, blocker))
        remaining = next_remaining

    return remaining


def subtract_from_all(intervals: Iterable[Interval], blockers: Iterable[Interval]) -> List[Interval]:
    """Apply :func:`subtract_all` to each interval and concatenate in start order."""
    blocker_list = sorted(blockers)
    result: List[Interval] = []
    for interval in sorted(intervals):
        result.extend(subtract_all(interval, blocker_list))
    return result


def union_all(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Merge overlapping or adjacent intervals.

    Example: [09:00-10:00, 10:00-11:00, 10:30-12:00] -> [09:00-12:00]
    Zero-length intervals are discarded.
    """
    ordered = sorted(i for i in intervals if not i.is_empty())
    if not ordered:
        return []

    merged: List[Interval] = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)

    return merged


def parse_minutes(value) -> int:
    """
    Convert an ``"HH:MM"`` string, ``datetime.time`` or int to minutes of day.

    ``"24:00"`` is accepted as the end of the day.

    Raises:
        ValueError: If the value cannot be interpreted as a time of day
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to a time of day")
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, time):
        minutes = value.hour * 60 + value.minute
    elif isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
            raise ValueError(f"Time must be in HH:MM format, got {value!r}")
        hours, mins = int(parts[0]), int(parts[1])
        if mins > 59:
            raise ValueError(f"Minute must be between 0 and 59, got {value!r}")
        minutes = hours * 60 + mins
    else:
        raise ValueError(f"Cannot convert {type(value).__name__} to a time of day")

    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Time of day out of range: {value!r}")
    return minutes


def format_minutes(minutes: int) -> str:
    """Format minutes of day as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
