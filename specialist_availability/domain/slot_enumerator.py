"""
Enumeration of bookable slots inside free sub-intervals.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .intervals import Interval


def slot_step(duration_minutes: int, step_minutes: Optional[int] = None) -> int:
    """
    Resolve the distance between candidate starts.

    Raises:
        ValueError: If duration or step is not positive
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be greater than zero, got {duration_minutes}")

    step = duration_minutes if step_minutes is None else step_minutes
    if step <= 0:
        raise ValueError(f"step_minutes must be greater than zero, got {step_minutes}")
    return step


def enumerate_slots(
    free_intervals: Iterable[Interval],
    duration_minutes: int,
    step_minutes: Optional[int] = None,
) -> List[Interval]:
    """
    Cut free time into slots of exactly ``duration_minutes``.

    Candidate starts are ``s, s+step, s+2*step, ...`` inside each free
    interval ``[s, e)`` while the slot still ends at or before ``e``. Each
    slot therefore lies entirely within a single free interval.

    Args:
        free_intervals: Free sub-intervals of one day, ordered by start
        duration_minutes: Length of every slot
        step_minutes: Distance between candidate starts; defaults to the
            duration, which gives back-to-back slots

    Returns:
        Slots in chronological order

    Raises:
        ValueError: If duration or step is not positive
    """
    step = slot_step(duration_minutes, step_minutes)

    slots: List[Interval] = []
    for free in sorted(free_intervals):
        candidate = free.start
        while candidate + duration_minutes <= free.end:
            slots.append(Interval(candidate, candidate + duration_minutes))
            candidate += step

    return slots
