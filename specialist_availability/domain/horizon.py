"""
Walking the booking horizon day by day.

The walker is read-only: it asks a callback for each date's appointments,
runs the day resolver and slot enumerator, and stops early once the
caller's limit is reached.
"""

from __future__ import annotations

import logging
from datetime import date as date_type
from datetime import datetime
from itertools import islice
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from .day_resolver import explain_day
from .intervals import Interval
from .models import (
    Appointment,
    AvailabilityReason,
    AvailableSlot,
    Service,
    WorkSchedule,
    to_date,
)
from .slot_enumerator import enumerate_slots, slot_step
from .validation import validate_schedule

logger = logging.getLogger(__name__)

FetchAppointments = Callable[[str, pendulum.Date], Iterable[Appointment]]


def horizon_end(today: date_type, months: int) -> pendulum.Date:
    """
    Get the last bookable date.

    Calendar-month arithmetic: Jan 31 + 1 month is the last day of February.
    """
    return to_date(today).add(months=months)


class HorizonWalker:
    """
    Enumerates bookable slots from today up to the booking horizon.

    Appointments are read through ``fetch_appointments(specialist_id, date)``.
    Errors raised by the callback propagate unchanged: an incomplete
    appointment list would produce slots that double-book.
    """

    def __init__(self, fetch_appointments: FetchAppointments, timezone: str = "UTC"):
        self._fetch_appointments = fetch_appointments
        self.timezone = timezone

    def list_available_slots(
        self,
        schedule: WorkSchedule,
        service: Service,
        now: datetime,
        *,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None,
        step_minutes: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[AvailableSlot]:
        """
        List slots across the horizon in chronological order.

        Args:
            schedule: Validated schedule snapshot of the specialist
            service: Service whose duration sizes every slot
            now: Current instant; slots at or before it are never offered
            start_date: Optional first date to consider (clamped to today)
            end_date: Optional last date to consider (clamped to the horizon)
            step_minutes: Slot granularity, defaults to the service duration
            limit: Stop after this many slots

        Returns:
            List of AvailableSlot objects, empty when nothing is bookable
        """
        slots = self.iter_available_slots(
            schedule,
            service,
            now,
            start_date=start_date,
            end_date=end_date,
            step_minutes=step_minutes,
        )
        if limit is not None:
            slots = islice(slots, _check_limit(limit))
        result = list(slots)

        logger.info(
            "Found %d slot(s) for specialist %s (duration %d min)",
            len(result), schedule.specialist_id, service.duration_minutes,
        )
        return result

    def list_available_dates(
        self,
        schedule: WorkSchedule,
        service: Service,
        now: datetime,
        *,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None,
        step_minutes: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[pendulum.Date]:
        """List dates that have at least one bookable slot."""
        dates = (
            day
            for day, slots in self._iter_days(
                schedule, service, now, start_date, end_date, step_minutes
            )
            if slots
        )
        if limit is not None:
            dates = islice(dates, _check_limit(limit))
        return list(dates)

    def iter_available_slots(
        self,
        schedule: WorkSchedule,
        service: Service,
        now: datetime,
        *,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None,
        step_minutes: Optional[int] = None,
    ) -> Iterator[AvailableSlot]:
        """Lazily yield slots; stop iterating to abort the walk early."""
        for day, slots in self._iter_days(
            schedule, service, now, start_date, end_date, step_minutes
        ):
            for interval in slots:
                yield AvailableSlot(date=day, interval=interval)

    def date_range(
        self,
        schedule: WorkSchedule,
        now: datetime,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None,
    ) -> Tuple[pendulum.Date, pendulum.Date]:
        """
        Resolve the inclusive date window to walk.

        The window never starts before today nor ends after the horizon.
        """
        today = self._localize(now).date()
        last = horizon_end(today, schedule.booking_horizon_months)

        first = today if start_date is None else max(to_date(start_date), today)
        if end_date is not None:
            last = min(to_date(end_date), last)
        return first, last

    def _iter_days(
        self,
        schedule: WorkSchedule,
        service: Service,
        now: datetime,
        start_date: Optional[date_type],
        end_date: Optional[date_type],
        step_minutes: Optional[int],
    ) -> Iterator[Tuple[pendulum.Date, List[Interval]]]:
        validate_schedule(schedule)
        step = slot_step(service.duration_minutes, step_minutes)
        if not schedule.enabled:
            logger.debug("Schedule of %s is disabled", schedule.specialist_id)
            return

        local_now = self._localize(now)
        today = local_now.date()
        cutoff = local_now.hour * 60 + local_now.minute

        first, last = self.date_range(schedule, now, start_date, end_date)
        day = first
        while day <= last:
            # Days closed by the template itself need no appointment read.
            if explain_day(schedule, day, ()).reason is AvailabilityReason.AVAILABLE:
                appointments = self._fetch_appointments(schedule.specialist_id, day)
                free = explain_day(schedule, day, appointments).free_intervals
                slots = enumerate_slots(free, service.duration_minutes, step)
                if day == today:
                    slots = [slot for slot in slots if slot.start > cutoff]
                yield day, slots
            day = day.add(days=1)

    def _localize(self, now: datetime) -> DateTime:
        if isinstance(now, DateTime):
            return now.in_timezone(self.timezone)
        if now.tzinfo is None:
            return pendulum.instance(now, tz=self.timezone)
        return pendulum.instance(now).in_timezone(self.timezone)


def _check_limit(limit: int) -> int:
    if limit < 1:
        raise ValueError(f"limit must be greater than zero, got {limit}")
    return limit
