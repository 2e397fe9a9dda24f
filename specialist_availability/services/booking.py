"""
Concurrency-safe conversion of an advisory slot into an appointment.

Commits for the same specialist and date are serialised behind one lock;
commits for other specialists or dates proceed in parallel. Rescheduling
holds the locks of both the old and the new date.
"""

from __future__ import annotations

import logging
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import replace
from datetime import date as date_type
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

import pendulum

from ..domain.day_resolver import explain_day
from ..domain.exceptions import SlotUnavailable
from ..domain.intervals import Interval, contains, overlaps
from ..domain.models import Appointment, AppointmentStatus, WorkSchedule, to_date

logger = logging.getLogger(__name__)

DayKey = Tuple[str, pendulum.Date]


class AppointmentStoreProtocol(Protocol):
    """Protocol describing the appointment store behaviour needed by the engine."""

    def list_appointments(self, specialist_id: str, day: pendulum.Date) -> List[Appointment]:
        """Return every appointment of the specialist on the date."""

    def get_appointment(self, appointment_id: str) -> Appointment:
        """Return one appointment, raising UnknownAppointment if missing."""

    def add_appointment(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment, raising SlotUnavailable on conflict."""

    def update_appointment(self, appointment: Appointment) -> Appointment:
        """Replace the appointment with the same id, raising SlotUnavailable on conflict."""


class _KeyedLocks:
    """Reference-counted locks, one per key, dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[DayKey, List] = {}

    @contextmanager
    def hold(self, key: DayKey) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    @contextmanager
    def hold_all(self, keys: Iterable[DayKey]) -> Iterator[None]:
        """Hold several keys, always acquired in sorted order."""
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.hold(key))
            yield


class BookingCommitGuard:
    """
    Re-validates a chosen slot and reserves it atomically.

    Slot lists are advisory snapshots; this is the only place where the
    current state of the store is checked again before writing.
    """

    BOOKABLE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)

    def __init__(self, store: AppointmentStoreProtocol):
        self._store = store
        self._locks = _KeyedLocks()

    def commit_booking(
        self,
        specialist_id: str,
        day: date_type,
        interval: Interval,
        desired_status: AppointmentStatus = AppointmentStatus.PENDING,
        *,
        schedule: Optional[WorkSchedule] = None,
        service_id: Optional[str] = None,
    ) -> Appointment:
        """
        Reserve ``interval`` on ``day`` for the specialist.

        Args:
            specialist_id: Specialist being booked
            day: Calendar date of the slot
            interval: Slot in minutes of day
            desired_status: Initial status, pending or confirmed
            schedule: When given, the slot must also lie in the day's free
                time (working hours minus breaks, vacations and bookings)
            service_id: Optional catalog reference stored on the appointment

        Returns:
            The stored Appointment

        Raises:
            SlotUnavailable: If the slot overlaps a live booking or falls
                outside the specialist's free time
            ValueError: If the interval is empty or the status is not bookable
        """
        day = to_date(day)
        status = self._check_request(specialist_id, interval, desired_status, schedule)

        with self._locks.hold((specialist_id, day)):
            current = self._store.list_appointments(specialist_id, day)

            if not self._is_free(specialist_id, day, interval, current, schedule):
                logger.warning(
                    "Rejected booking %s on %s for specialist %s: slot taken",
                    interval, day.isoformat(), specialist_id,
                )
                raise SlotUnavailable(specialist_id, day, interval)

            appointment = self._store.add_appointment(
                Appointment(
                    specialist_id=specialist_id,
                    date=day,
                    start_time=interval.start,
                    end_time=interval.end,
                    status=status,
                    service_id=service_id,
                )
            )

        logger.info(
            "Booked %s on %s for specialist %s (%s)",
            interval, day.isoformat(), specialist_id, appointment.appointment_id,
        )
        return appointment

    def reschedule_booking(
        self,
        appointment_id: str,
        day: date_type,
        interval: Interval,
        desired_status: AppointmentStatus = AppointmentStatus.PENDING,
        *,
        schedule: Optional[WorkSchedule] = None,
    ) -> Appointment:
        """
        Move a live appointment to another slot, keeping its id.

        The appointment's own current time never blocks its new slot.

        Raises:
            UnknownAppointment: If no appointment has the given id
            SlotUnavailable: If the new slot is not free
            ValueError: If the appointment is no longer live, or the request
                is invalid as for ``commit_booking``
        """
        day = to_date(day)

        while True:
            seen = self._store.get_appointment(appointment_id)
            specialist_id = seen.specialist_id
            status = self._check_request(specialist_id, interval, desired_status, schedule)

            with self._locks.hold_all([(specialist_id, seen.date), (specialist_id, day)]):
                current = self._store.get_appointment(appointment_id)
                if current.date != seen.date:
                    # Moved by another caller meanwhile; lock its new date instead
                    continue
                if not current.blocks_availability:
                    raise ValueError(
                        f"Cannot reschedule a {current.status.value} appointment {appointment_id}"
                    )

                others = [
                    a for a in self._store.list_appointments(specialist_id, day)
                    if a.appointment_id != appointment_id
                ]
                if not self._is_free(specialist_id, day, interval, others, schedule):
                    logger.warning(
                        "Rejected moving %s to %s on %s: slot taken",
                        appointment_id, interval, day.isoformat(),
                    )
                    raise SlotUnavailable(specialist_id, day, interval)

                moved = self._store.update_appointment(
                    replace(
                        current,
                        date=day,
                        start_time=interval.start,
                        end_time=interval.end,
                        status=status,
                    )
                )

            logger.info(
                "Moved %s from %s %s to %s %s",
                appointment_id, current.date.isoformat(), current.interval, day.isoformat(), interval,
            )
            return moved

    def cancel_booking(self, appointment_id: str) -> Appointment:
        """
        Cancel a live appointment, freeing its slot.

        Raises:
            UnknownAppointment: If no appointment has the given id
            ValueError: If the appointment is already cancelled, completed
                or archived
        """
        seen = self._store.get_appointment(appointment_id)
        with self._locks.hold((seen.specialist_id, seen.date)):
            current = self._store.get_appointment(appointment_id)
            if not current.blocks_availability:
                raise ValueError(
                    f"Cannot cancel a {current.status.value} appointment {appointment_id}"
                )
            cancelled = self._store.update_appointment(
                replace(current, status=AppointmentStatus.CANCELLED)
            )

        logger.info("Cancelled %s on %s", appointment_id, cancelled.date.isoformat())
        return cancelled

    def _check_request(
        self,
        specialist_id: str,
        interval: Interval,
        desired_status: AppointmentStatus,
        schedule: Optional[WorkSchedule],
    ) -> AppointmentStatus:
        status = AppointmentStatus(desired_status)
        if schedule is not None and schedule.specialist_id != specialist_id:
            raise ValueError(
                f"Schedule of {schedule.specialist_id} cannot be used to book {specialist_id}"
            )
        if status not in self.BOOKABLE_STATUSES:
            raise ValueError(f"Cannot book a slot with status '{status.value}'")
        if interval.is_empty():
            raise ValueError(f"Cannot book an empty interval {interval}")
        return status

    @staticmethod
    def _is_free(
        specialist_id: str,
        day: pendulum.Date,
        interval: Interval,
        appointments: List[Appointment],
        schedule: Optional[WorkSchedule],
    ) -> bool:
        if schedule is not None:
            free = explain_day(schedule, day, appointments).free_intervals
            return any(contains(fragment, interval) for fragment in free)

        return not any(
            overlaps(appointment.interval, interval)
            for appointment in appointments
            if appointment.blocks_availability
            and appointment.specialist_id == specialist_id
            and appointment.date == day
        )
