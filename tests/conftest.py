"""
Shared fixtures for engine tests.
"""

from dataclasses import replace

import pendulum
import pytest

from specialist_availability.domain.models import (
    Appointment,
    AppointmentStatus,
    LunchBreak,
    Weekday,
    WorkDay,
    WorkSchedule,
    default_work_schedule,
)

# 2024-11-25 is a Monday
MONDAY = pendulum.date(2024, 11, 25)


def make_schedule(specialist_id: str = "anna", **overrides) -> WorkSchedule:
    """Default Mon-Fri 09:00-18:00 schedule with a 13:00-14:00 lunch break."""
    return replace(default_work_schedule(specialist_id), **overrides)


def with_day(schedule: WorkSchedule, work_day: WorkDay) -> WorkSchedule:
    """Replace the template of one weekday."""
    days = tuple(work_day if d.weekday == work_day.weekday else d for d in schedule.work_days)
    return replace(schedule, work_days=days)


def booking(start: str, end: str, status=AppointmentStatus.CONFIRMED, day=MONDAY, specialist_id="anna"):
    return Appointment(specialist_id=specialist_id, date=day, start_time=start, end_time=end, status=status)


@pytest.fixture
def schedule() -> WorkSchedule:
    return make_schedule()


@pytest.fixture
def monday_template() -> WorkDay:
    return WorkDay(
        weekday=Weekday.MONDAY,
        active=True,
        start_time="09:00",
        end_time="18:00",
        lunch_breaks=(LunchBreak("13:00", "14:00"),),
    )
