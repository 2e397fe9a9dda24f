"""
Tests for the day availability resolver.
"""

from dataclasses import replace

import pendulum

from specialist_availability.domain.day_resolver import explain_day, resolve_day_availability
from specialist_availability.domain.intervals import Interval, parse_minutes
from specialist_availability.domain.models import (
    AppointmentStatus,
    AvailabilityReason,
    LunchBreak,
    Vacation,
    Weekday,
    WorkDay,
)

from conftest import MONDAY, booking, make_schedule, with_day


def iv(start: str, end: str) -> Interval:
    return Interval(parse_minutes(start), parse_minutes(end))


class TestResolveDayAvailability:
    """Tests for resolve_day_availability and explain_day."""

    def test_lunch_and_booking_are_removed(self, schedule):
        """Monday 09:00-18:00, lunch 13:00-14:00, booking 10:00-10:30."""
        free = resolve_day_availability(schedule, MONDAY, [booking("10:00", "10:30")])

        assert free == [iv("09:00", "10:00"), iv("10:30", "13:00"), iv("14:00", "18:00")]

    def test_disabled_schedule_has_no_time(self):
        result = explain_day(make_schedule(enabled=False), MONDAY, [])

        assert result.reason is AvailabilityReason.SCHEDULE_DISABLED
        assert result.free_intervals == ()
        assert not result.is_available

    def test_vacation_wins_over_active_day(self):
        schedule = make_schedule(vacations=(Vacation("2024-11-20", "2024-11-25"),))

        result = explain_day(schedule, MONDAY, [])

        assert result.reason is AvailabilityReason.VACATION
        assert resolve_day_availability(schedule, MONDAY, []) == []

    def test_overlapping_vacations(self):
        schedule = make_schedule(vacations=(
            Vacation("2024-11-20", "2024-11-26"),
            Vacation("2024-11-25", "2024-11-30"),
        ))
        assert explain_day(schedule, pendulum.date(2024, 11, 26), []).reason is AvailabilityReason.VACATION
        assert explain_day(schedule, pendulum.date(2024, 12, 2), []).is_available

    def test_disabled_vacation_is_ignored(self):
        schedule = make_schedule(vacations=(Vacation(MONDAY, MONDAY, enabled=False),))
        assert explain_day(schedule, MONDAY, []).is_available

    def test_inactive_weekday(self, schedule):
        saturday = pendulum.date(2024, 11, 30)
        assert explain_day(schedule, saturday, []).reason is AvailabilityReason.NOT_WORKING_DAY

    def test_overlapping_lunch_breaks_are_merged(self, schedule):
        day = WorkDay(
            Weekday.MONDAY, True, "09:00", "18:00",
            (LunchBreak("12:00", "13:00"), LunchBreak("12:30", "14:00"), LunchBreak("12:15", "12:45")),
        )

        free = resolve_day_availability(with_day(schedule, day), MONDAY, [])

        assert free == [iv("09:00", "12:00"), iv("14:00", "18:00")]

    def test_disabled_lunch_break_is_ignored(self, schedule):
        day = WorkDay(Weekday.MONDAY, True, "09:00", "18:00", (LunchBreak("13:00", "14:00", enabled=False),))

        free = resolve_day_availability(with_day(schedule, day), MONDAY, [])

        assert free == [iv("09:00", "18:00")]

    def test_non_blocking_statuses_are_ignored(self, schedule):
        appointments = [
            booking("09:00", "10:00", AppointmentStatus.CANCELLED),
            booking("10:00", "11:00", AppointmentStatus.COMPLETED),
            booking("11:00", "12:00", AppointmentStatus.ARCHIVED),
            booking("16:00", "17:00", AppointmentStatus.PENDING),
        ]

        free = resolve_day_availability(schedule, MONDAY, appointments)

        assert free == [iv("09:00", "13:00"), iv("14:00", "16:00"), iv("17:00", "18:00")]

    def test_foreign_appointments_are_ignored(self, schedule):
        appointments = [
            booking("09:00", "10:00", specialist_id="boris"),
            booking("10:00", "11:00", day=pendulum.date(2024, 11, 26)),
        ]

        free = resolve_day_availability(schedule, MONDAY, appointments)

        assert free == [iv("09:00", "13:00"), iv("14:00", "18:00")]

    def test_fully_booked_day(self, schedule):
        appointments = [booking("09:00", "13:00"), booking("14:00", "18:00")]

        result = explain_day(schedule, MONDAY, appointments)

        assert result.reason is AvailabilityReason.FULLY_BOOKED
        assert result.free_intervals == ()

    def test_booking_across_lunch(self, schedule):
        free = resolve_day_availability(schedule, MONDAY, [booking("12:30", "14:30")])
        assert free == [iv("09:00", "12:30"), iv("14:30", "18:00")]

    def test_booked_ranges_are_merged_and_clipped(self, schedule):
        appointments = [booking("08:00", "09:30"), booking("09:30", "10:00"), booking("17:30", "18:00")]

        result = explain_day(schedule, MONDAY, appointments)

        assert result.booked_intervals == (iv("09:00", "10:00"), iv("17:30", "18:00"))

    def test_inputs_are_not_mutated(self, schedule):
        appointments = [booking("10:00", "10:30")]
        before = replace(schedule)

        resolve_day_availability(schedule, MONDAY, appointments)

        assert schedule == before
        assert len(appointments) == 1
