"""
Domain models for work schedules, appointments and bookable slots.

All models are immutable snapshots: collections are stored as tuples and
times of day are normalised to integer minutes on construction.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date as date_type
from enum import Enum, IntEnum
from typing import Optional, Tuple

import pendulum
from pendulum import DateTime

from .intervals import MINUTES_PER_DAY, Interval, format_minutes, parse_minutes

ALLOWED_HORIZON_MONTHS = (2, 6, 12)
DEFAULT_HORIZON_MONTHS = 2
DEFAULT_SERVICE_DURATION_MINUTES = 60


class Weekday(IntEnum):
    """Day of week, 0=Sunday .. 6=Saturday."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, day: date_type) -> "Weekday":
        """Get the weekday of a calendar date."""
        return cls(day.isoweekday() % 7)


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    @property
    def blocks_availability(self) -> bool:
        """Only live bookings occupy the specialist's time."""
        return self in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class AvailabilityReason(str, Enum):
    """Why a day has (or lacks) free time."""
    AVAILABLE = "available"
    SCHEDULE_DISABLED = "schedule_disabled"
    VACATION = "vacation"
    NOT_WORKING_DAY = "not_working_day"
    FULLY_BOOKED = "fully_booked"


def to_date(value) -> pendulum.Date:
    if isinstance(value, DateTime):
        return value.date()
    if isinstance(value, pendulum.Date):
        return value
    if isinstance(value, date_type):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, str):
        parsed = pendulum.parse(value, exact=True)
        if isinstance(parsed, DateTime):
            return parsed.date()
        if isinstance(parsed, pendulum.Date):
            return parsed
    raise ValueError(f"Cannot convert {value!r} to a date")


@dataclass(frozen=True)
class LunchBreak:
    """A recurring break inside a working day."""
    start_time: int
    end_time: int
    enabled: bool = True

    def __post_init__(self):
        object.__setattr__(self, "start_time", parse_minutes(self.start_time))
        object.__setattr__(self, "end_time", parse_minutes(self.end_time))

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)


@dataclass(frozen=True)
class WorkDay:
    """
    Template for one weekday.

    Invariant (checked by validation, not here): start_time < end_time and
    every lunch break lies within the working interval.
    """
    weekday: Weekday
    active: bool
    start_time: int
    end_time: int
    lunch_breaks: Tuple[LunchBreak, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "weekday", Weekday(self.weekday))
        object.__setattr__(self, "start_time", parse_minutes(self.start_time))
        object.__setattr__(self, "end_time", parse_minutes(self.end_time))
        object.__setattr__(self, "lunch_breaks", tuple(self.lunch_breaks))

    @property
    def working_interval(self) -> Interval:
        """Get the nominal working range ``[start_time, end_time)``."""
        return Interval(self.start_time, self.end_time)

    def enabled_breaks(self) -> Tuple[Interval, ...]:
        return tuple(b.interval for b in self.lunch_breaks if b.enabled)


@dataclass(frozen=True)
class Vacation:
    """An inclusive range of calendar dates with no availability."""
    start_date: pendulum.Date
    end_date: pendulum.Date
    enabled: bool = True
    description: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "start_date", to_date(self.start_date))
        object.__setattr__(self, "end_date", to_date(self.end_date))

    def covers(self, day: date_type) -> bool:
        """Check if a date falls inside this vacation (bounds inclusive)."""
        return self.enabled and self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class WorkSchedule:
    """
    Recurring weekly pattern of one specialist plus its exceptions.

    Invariant (checked by validation): exactly one WorkDay per weekday.
    """
    specialist_id: str
    work_days: Tuple[WorkDay, ...]
    vacations: Tuple[Vacation, ...] = ()
    enabled: bool = True
    booking_horizon_months: int = DEFAULT_HORIZON_MONTHS

    def __post_init__(self):
        object.__setattr__(self, "work_days", tuple(self.work_days))
        object.__setattr__(self, "vacations", tuple(self.vacations))

    def work_day_for(self, day: date_type) -> WorkDay | None:
        """Get the weekday template that applies to a date."""
        weekday = Weekday.of(day)
        for work_day in self.work_days:
            if work_day.weekday == weekday:
                return work_day
        return None

    def is_on_vacation(self, day: date_type) -> bool:
        return any(vacation.covers(day) for vacation in self.vacations)


def default_work_schedule(specialist_id: str) -> WorkSchedule:
    """
    Build the schedule a new specialist starts with.

    Monday to Friday 09:00-18:00 with a 13:00-14:00 lunch break, weekends off.
    """
    work_days = [
        WorkDay(
            weekday=weekday,
            active=Weekday.MONDAY <= weekday <= Weekday.FRIDAY,
            start_time="09:00",
            end_time="18:00",
            lunch_breaks=(LunchBreak(start_time="13:00", end_time="14:00"),),
        )
        for weekday in Weekday
    ]
    return WorkSchedule(specialist_id=specialist_id, work_days=tuple(work_days))


@dataclass(frozen=True)
class Service:
    """Catalog service, used only for its duration."""
    duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES
    service_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Appointment:
    """A booking owned by the appointment store."""
    specialist_id: str
    date: pendulum.Date
    start_time: int
    end_time: int
    status: AppointmentStatus = AppointmentStatus.PENDING
    appointment_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    service_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "start_time", parse_minutes(self.start_time))
        object.__setattr__(self, "end_time", parse_minutes(self.end_time))
        object.__setattr__(self, "status", AppointmentStatus(self.status))

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    @property
    def blocks_availability(self) -> bool:
        return self.status.blocks_availability


@dataclass(frozen=True)
class AvailableSlot:
    """
    A bookable slot found on a specific date.
    """
    date: pendulum.Date
    interval: Interval

    def start(self, timezone: str) -> DateTime:
        """Get the slot start as a timezone-aware datetime."""
        return self._wall_clock(self.interval.start, timezone)

    def end(self, timezone: str) -> DateTime:
        """Get the slot end as a timezone-aware datetime."""
        return self._wall_clock(self.interval.end, timezone)

    def _wall_clock(self, minutes: int, timezone: str) -> DateTime:
        # 24:00 is midnight of the following day
        day = self.date.add(days=minutes // MINUTES_PER_DAY)
        minutes %= MINUTES_PER_DAY
        return pendulum.datetime(
            day.year, day.month, day.day, minutes // 60, minutes % 60, tz=timezone
        )

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:MM - HH:MM
        """
        weekday = Weekday.of(self.date).name.capitalize()
        return (
            f"{weekday}, {self.date.isoformat()} | "
            f"{format_minutes(self.interval.start)} - {format_minutes(self.interval.end)}"
        )


@dataclass(frozen=True)
class DayAvailability:
    """
    Free time of one date together with the reason for its shape.

    ``booked_intervals`` holds live bookings merged and clipped to working hours.
    """
    date: pendulum.Date
    reason: AvailabilityReason
    free_intervals: Tuple[Interval, ...] = ()
    booked_intervals: Tuple[Interval, ...] = ()

    @property
    def is_available(self) -> bool:
        return self.reason is AvailabilityReason.AVAILABLE
