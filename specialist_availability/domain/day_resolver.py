"""
Resolution of one calendar date into free sub-intervals.

Pure domain logic: the caller supplies the schedule snapshot and the
appointments already read for the date.
"""

from __future__ import annotations

import logging
from datetime import date as date_type
from typing import Iterable, List

from .intervals import Interval, intersect, subtract_all, subtract_from_all, union_all
from .models import (
    Appointment,
    AvailabilityReason,
    DayAvailability,
    WorkSchedule,
    to_date,
)

logger = logging.getLogger(__name__)


def explain_day(
    schedule: WorkSchedule,
    day: date_type,
    appointments: Iterable[Appointment],
) -> DayAvailability:
    """
    Compute the free time of a date and record why it looks the way it does.

    Algorithm:
    1. Disabled schedule, vacation or inactive weekday -> nothing free
    2. Start from the working interval of the weekday
    3. Subtract the union of enabled lunch breaks
    4. Subtract blocking appointments (pending/confirmed) of the specialist

    Bookings are also reported merged and clipped to working hours.
    """
    day = to_date(day)

    if not schedule.enabled:
        return DayAvailability(date=day, reason=AvailabilityReason.SCHEDULE_DISABLED)

    if schedule.is_on_vacation(day):
        return DayAvailability(date=day, reason=AvailabilityReason.VACATION)

    work_day = schedule.work_day_for(day)
    if work_day is None or not work_day.active:
        return DayAvailability(date=day, reason=AvailabilityReason.NOT_WORKING_DAY)

    breaks = union_all(work_day.enabled_breaks())
    free = subtract_all(work_day.working_interval, breaks)

    booked: List[Interval] = union_all(
        appointment.interval
        for appointment in appointments
        if appointment.blocks_availability
        and appointment.specialist_id == schedule.specialist_id
        and appointment.date == day
    )
    if booked:
        free = subtract_from_all(free, booked)
    occupied = tuple(
        part for part in (intersect(work_day.working_interval, b) for b in booked) if part is not None
    )

    logger.debug(
        "Resolved %s for %s: %d free interval(s), %d booked range(s)",
        day.isoformat(), schedule.specialist_id, len(free), len(booked),
    )

    if not free:
        return DayAvailability(
            date=day, reason=AvailabilityReason.FULLY_BOOKED, booked_intervals=occupied
        )

    return DayAvailability(
        date=day,
        reason=AvailabilityReason.AVAILABLE,
        free_intervals=tuple(free),
        booked_intervals=occupied,
    )


def resolve_day_availability(
    schedule: WorkSchedule,
    day: date_type,
    appointments: Iterable[Appointment],
) -> List[Interval]:
    """
    Get the ordered free sub-intervals of a date.

    Returns an empty list when the day has no availability at all.
    """
    return list(explain_day(schedule, day, appointments).free_intervals)
