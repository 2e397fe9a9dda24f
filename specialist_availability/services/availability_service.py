"""
Application service for listing and booking specialist slots.

The service ties the schedule repository and the appointment store to the
pure domain pipeline, so the CLI (or any other caller) stays thin. Both
dependencies are protocols and can be replaced by stubs in tests.
"""

from __future__ import annotations

import logging
from datetime import date as date_type
from datetime import datetime
from typing import List, Optional, Protocol

import pendulum

from ..domain.day_resolver import explain_day
from ..domain.exceptions import SlotUnavailable, UnknownSpecialist
from ..domain.horizon import HorizonWalker
from ..domain.intervals import Interval
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    AvailableSlot,
    DayAvailability,
    Service,
    WorkSchedule,
    to_date,
)
from ..domain.validation import validate_schedule
from .booking import AppointmentStoreProtocol, BookingCommitGuard

logger = logging.getLogger(__name__)


class ScheduleSourceProtocol(Protocol):
    """Protocol describing where schedules come from."""

    def get_schedule(self, specialist_id: str) -> WorkSchedule | None:
        """Return the specialist's schedule, or None if none exists."""


class AvailabilityService:
    """
    Orchestrates schedule lookup, slot enumeration and booking commits.
    """

    def __init__(
        self,
        schedules: ScheduleSourceProtocol,
        store: AppointmentStoreProtocol,
        *,
        timezone: str = "UTC",
        step_minutes: Optional[int] = None,
        default_status: AppointmentStatus = AppointmentStatus.PENDING,
    ) -> None:
        self._schedules = schedules
        self._store = store
        self.timezone = timezone
        self.step_minutes = step_minutes
        self.default_status = default_status
        self._walker = HorizonWalker(store.list_appointments, timezone=timezone)
        self._guard = BookingCommitGuard(store)

    def get_schedule(self, specialist_id: str) -> WorkSchedule:
        """
        Get the validated schedule of a specialist.

        Raises:
            UnknownSpecialist: If no schedule is configured
            InvalidScheduleConfig: If the stored schedule is malformed
        """
        schedule = self._schedules.get_schedule(specialist_id)
        if schedule is None:
            raise UnknownSpecialist(f"No schedule configured for specialist '{specialist_id}'")
        return validate_schedule(schedule)

    def list_available_slots(
        self,
        specialist_id: str,
        service: Service,
        now: Optional[datetime] = None,
        *,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None,
        step_minutes: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[AvailableSlot]:
        """List bookable slots for the specialist across the booking horizon."""
        return self._walker.list_available_slots(
            self.get_schedule(specialist_id),
            service,
            now or pendulum.now(self.timezone),
            start_date=start_date,
            end_date=end_date,
            step_minutes=self.step_minutes if step_minutes is None else step_minutes,
            limit=limit,
        )

    def list_available_dates(
        self,
        specialist_id: str,
        service: Service,
        now: Optional[datetime] = None,
        *,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None,
        step_minutes: Optional[int] = None,
    ) -> List[pendulum.Date]:
        """List dates that still have at least one bookable slot."""
        return self._walker.list_available_dates(
            self.get_schedule(specialist_id),
            service,
            now or pendulum.now(self.timezone),
            start_date=start_date,
            end_date=end_date,
            step_minutes=self.step_minutes if step_minutes is None else step_minutes,
        )

    def explain_day(self, specialist_id: str, day: date_type) -> DayAvailability:
        """Get the free time of one date together with its reason."""
        schedule = self.get_schedule(specialist_id)
        day = to_date(day)
        return explain_day(schedule, day, self._store.list_appointments(specialist_id, day))

    def commit_booking(
        self,
        specialist_id: str,
        day: date_type,
        interval: Interval,
        desired_status: Optional[AppointmentStatus] = None,
        *,
        service_id: Optional[str] = None,
    ) -> Appointment:
        """
        Book a slot, re-checking it against the schedule and current bookings.

        Raises:
            SlotUnavailable: If the slot is no longer free; re-enumerate and retry
        """
        return self._guard.commit_booking(
            specialist_id,
            day,
            interval,
            self.default_status if desired_status is None else desired_status,
            schedule=self.get_schedule(specialist_id),
            service_id=service_id,
        )

    def get_appointment(self, appointment_id: str) -> Appointment:
        """Get a stored booking by id."""
        return self._store.get_appointment(appointment_id)

    def reschedule_booking(
        self,
        appointment_id: str,
        day: date_type,
        interval: Interval,
        desired_status: Optional[AppointmentStatus] = None,
    ) -> Appointment:
        """
        Move a live booking to a new slot.

        The new slot is checked against the specialist's schedule and every
        other booking. Unless a status is given, the moved booking goes back
        to the configured default status, so a confirmed booking needs to be
        confirmed again when new bookings require confirmation.

        Raises:
            UnknownAppointment: If no appointment has the given id
            SlotUnavailable: If the new slot is not free
        """
        appointment = self._store.get_appointment(appointment_id)
        return self._guard.reschedule_booking(
            appointment_id,
            day,
            interval,
            self.default_status if desired_status is None else desired_status,
            schedule=self.get_schedule(appointment.specialist_id),
        )

    def cancel_booking(self, appointment_id: str) -> Appointment:
        """
        Cancel a live booking so its slot becomes bookable again.

        Raises:
            UnknownAppointment: If no appointment has the given id
            ValueError: If the booking is not pending or confirmed
        """
        return self._guard.cancel_booking(appointment_id)

    def book_first_available(
        self,
        specialist_id: str,
        service: Service,
        now: Optional[datetime] = None,
        *,
        start_date: Optional[date_type] = None,
        max_attempts: int = 3,
    ) -> Appointment | None:
        """
        Book the earliest free slot, retrying when another caller wins the race.

        Returns:
            The new Appointment, or None if nothing is bookable

        Raises:
            SlotUnavailable: If every attempt lost the race
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error: SlotUnavailable | None = None
        for attempt in range(1, max_attempts + 1):
            slots = self.list_available_slots(
                specialist_id, service, now, start_date=start_date, limit=1
            )
            if not slots:
                return None
            slot = slots[0]
            try:
                return self.commit_booking(
                    specialist_id, slot.date, slot.interval, service_id=service.service_id
                )
            except SlotUnavailable as exc:
                last_error = exc
                logger.info(
                    "Slot %s on %s was taken, retrying (%d/%d)",
                    slot.interval, slot.date.isoformat(), attempt, max_attempts,
                )
        raise last_error
