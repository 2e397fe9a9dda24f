"""
In-memory appointment store.

Used by tests and as the base of the file-backed store. The store enforces
the no-overlap rule itself on every write, mirroring an overlap constraint
in a relational database.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date as date_type
from typing import Dict, Iterable, Iterator, List, Tuple

import pendulum

from ..domain.exceptions import SlotUnavailable, UnknownAppointment
from ..domain.intervals import overlaps
from ..domain.models import Appointment, to_date


class InMemoryAppointmentStore:
    """
    Thread-safe appointment store keyed by (specialist, date).

    A write either persists completely or leaves the store as it was.
    """

    def __init__(self, appointments: Iterable[Appointment] = ()):
        self._lock = threading.RLock()
        self._by_day: Dict[Tuple[str, pendulum.Date], List[Appointment]] = {}
        self._replace_all(appointments)

    def list_appointments(self, specialist_id: str, day: date_type) -> List[Appointment]:
        """Get a copy of the specialist's appointments on a date."""
        with self._locked():
            return list(self._by_day.get((specialist_id, to_date(day)), []))

    def get_appointment(self, appointment_id: str) -> Appointment:
        """
        Get a stored appointment by id.

        Raises:
            UnknownAppointment: If no appointment has the given id
        """
        with self._locked():
            return self._find(appointment_id)

    def add_appointment(self, appointment: Appointment) -> Appointment:
        """
        Insert an appointment.

        Raises:
            SlotUnavailable: If it overlaps a live appointment on the same day
        """
        with self._writing():
            self._check_free(appointment)
            self._by_day.setdefault(self._key(appointment), []).append(appointment)
        return appointment

    def update_appointment(self, appointment: Appointment) -> Appointment:
        """
        Replace the stored appointment that has the same id.

        Date, times and status may all change; the overlap rule is checked
        against every other appointment on the new date.

        Raises:
            UnknownAppointment: If no appointment has the given id
            SlotUnavailable: If the new version overlaps a live appointment
        """
        with self._writing():
            existing = self._find(appointment.appointment_id)
            self._check_free(appointment)
            self._by_day[self._key(existing)].remove(existing)
            self._by_day.setdefault(self._key(appointment), []).append(appointment)
        return appointment

    def all_appointments(self) -> List[Appointment]:
        with self._locked():
            return self._snapshot()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold exclusive access to the appointments."""
        with self._lock:
            yield

    @contextmanager
    def _writing(self) -> Iterator[None]:
        """Apply a change and persist it, or restore the previous state."""
        with self._locked():
            before = {key: list(items) for key, items in self._by_day.items()}
            try:
                yield
                self._after_write()
            except BaseException:
                self._by_day = before
                raise

    def _check_free(self, candidate: Appointment) -> None:
        if not candidate.blocks_availability:
            return
        for existing in self._by_day.get(self._key(candidate), []):
            if existing.appointment_id == candidate.appointment_id:
                continue
            if existing.blocks_availability and overlaps(existing.interval, candidate.interval):
                raise SlotUnavailable(candidate.specialist_id, candidate.date, candidate.interval)

    def _find(self, appointment_id: str) -> Appointment:
        for appointments in self._by_day.values():
            for appointment in appointments:
                if appointment.appointment_id == appointment_id:
                    return appointment
        raise UnknownAppointment(f"Unknown appointment: {appointment_id}")

    def _replace_all(self, appointments: Iterable[Appointment]) -> None:
        by_day: Dict[Tuple[str, pendulum.Date], List[Appointment]] = {}
        for appointment in appointments:
            by_day.setdefault(self._key(appointment), []).append(appointment)
        self._by_day = by_day

    def _snapshot(self) -> List[Appointment]:
        return [a for appointments in self._by_day.values() for a in appointments]

    @staticmethod
    def _key(appointment: Appointment) -> Tuple[str, pendulum.Date]:
        return appointment.specialist_id, appointment.date

    def _after_write(self) -> None:
        """Hook for subclasses that persist changes."""
