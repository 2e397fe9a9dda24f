"""
Tests for the booking commit guard and the in-memory store.
"""

import threading
import time
from dataclasses import replace
from typing import List

import pendulum
import pytest

from specialist_availability.adapters.memory_store import InMemoryAppointmentStore
from specialist_availability.domain.exceptions import SlotUnavailable, UnknownAppointment
from specialist_availability.domain.intervals import Interval, parse_minutes
from specialist_availability.domain.models import Appointment, AppointmentStatus, Vacation
from specialist_availability.services.booking import BookingCommitGuard

from conftest import MONDAY, booking, make_schedule


def iv(start: str, end: str) -> Interval:
    return Interval(parse_minutes(start), parse_minutes(end))


class SlowUnguardedStore:
    """
    Store without any locking or overlap check, with a slow read.

    Only the guard stands between concurrent callers and a double booking.
    """

    def __init__(self):
        self.appointments: List[Appointment] = []

    def list_appointments(self, specialist_id, day):
        snapshot = [a for a in self.appointments if a.specialist_id == specialist_id and a.date == day]
        time.sleep(0.05)
        return snapshot

    def add_appointment(self, appointment):
        self.appointments.append(appointment)
        return appointment


class TestBookingCommitGuard:
    """Tests for BookingCommitGuard.commit_booking."""

    def test_commit_stores_pending_appointment(self):
        store = InMemoryAppointmentStore()
        guard = BookingCommitGuard(store)

        appointment = guard.commit_booking("anna", MONDAY, iv("10:00", "10:30"))

        assert appointment.status is AppointmentStatus.PENDING
        assert appointment.interval == iv("10:00", "10:30")
        assert store.list_appointments("anna", MONDAY) == [appointment]

    def test_commit_confirmed(self):
        guard = BookingCommitGuard(InMemoryAppointmentStore())

        appointment = guard.commit_booking(
            "anna", "2024-11-25", iv("10:00", "10:30"), AppointmentStatus.CONFIRMED, service_id="massage"
        )

        assert appointment.status is AppointmentStatus.CONFIRMED
        assert appointment.service_id == "massage"
        assert appointment.date == MONDAY

    def test_overlap_is_rejected(self):
        guard = BookingCommitGuard(InMemoryAppointmentStore([booking("10:00", "11:00")]))

        with pytest.raises(SlotUnavailable) as exc_info:
            guard.commit_booking("anna", MONDAY, iv("10:30", "11:30"))

        assert exc_info.value.specialist_id == "anna"
        assert exc_info.value.interval == iv("10:30", "11:30")

    def test_adjacent_slot_is_accepted(self):
        store = InMemoryAppointmentStore([booking("10:00", "10:30")])
        guard = BookingCommitGuard(store)

        guard.commit_booking("anna", MONDAY, iv("10:30", "11:00"))

        assert len(store.list_appointments("anna", MONDAY)) == 2

    def test_cancelled_booking_does_not_block(self):
        guard = BookingCommitGuard(
            InMemoryAppointmentStore([booking("10:00", "10:30", AppointmentStatus.CANCELLED)])
        )

        appointment = guard.commit_booking("anna", MONDAY, iv("10:00", "10:30"))

        assert appointment.blocks_availability

    def test_other_specialist_does_not_block(self):
        guard = BookingCommitGuard(InMemoryAppointmentStore([booking("10:00", "10:30", specialist_id="boris")]))

        guard.commit_booking("anna", MONDAY, iv("10:00", "10:30"))

    @pytest.mark.parametrize(
        "start, end",
        [("13:00", "13:30"), ("12:45", "13:15"), ("08:30", "09:00"), ("17:45", "18:15")],
    )
    def test_schedule_rejects_time_outside_free_hours(self, start, end):
        guard = BookingCommitGuard(InMemoryAppointmentStore())

        with pytest.raises(SlotUnavailable):
            guard.commit_booking("anna", MONDAY, iv(start, end), schedule=make_schedule())

    def test_schedule_rejects_vacation_day(self):
        schedule = make_schedule(vacations=(Vacation(MONDAY, MONDAY),))
        guard = BookingCommitGuard(InMemoryAppointmentStore())

        with pytest.raises(SlotUnavailable):
            guard.commit_booking("anna", MONDAY, iv("10:00", "10:30"), schedule=schedule)

    def test_schedule_of_other_specialist(self):
        guard = BookingCommitGuard(InMemoryAppointmentStore())

        with pytest.raises(ValueError, match="cannot be used to book"):
            guard.commit_booking("boris", MONDAY, iv("10:00", "10:30"), schedule=make_schedule())

    @pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, "archived"])
    def test_non_bookable_status(self, status):
        guard = BookingCommitGuard(InMemoryAppointmentStore())

        with pytest.raises(ValueError, match="Cannot book a slot with status"):
            guard.commit_booking("anna", MONDAY, iv("10:00", "10:30"), status)

    def test_empty_interval(self):
        guard = BookingCommitGuard(InMemoryAppointmentStore())

        with pytest.raises(ValueError, match="empty interval"):
            guard.commit_booking("anna", MONDAY, iv("10:00", "10:00"))

    def test_concurrent_commits_for_same_slot(self):
        """Two racing callers: exactly one wins, the other gets SlotUnavailable."""
        store = SlowUnguardedStore()
        guard = BookingCommitGuard(store)
        barrier = threading.Barrier(2)
        results, errors = [], []

        def attempt():
            barrier.wait()
            try:
                results.append(guard.commit_booking("anna", MONDAY, iv("10:00", "10:30")))
            except SlotUnavailable as exc:
                errors.append(exc)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(results) == 1
        assert len(errors) == 1
        assert len(store.appointments) == 1

    def test_different_days_do_not_wait_for_each_other(self):
        store = SlowUnguardedStore()
        guard = BookingCommitGuard(store)
        days = [MONDAY.add(days=offset) for offset in range(8)]

        threads = [
            threading.Thread(target=guard.commit_booking, args=("anna", day, iv("10:00", "10:30")))
            for day in days
        ]
        started = time.monotonic()
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(store.appointments) == 8
        # Eight serialised reads would take at least 0.4s
        assert time.monotonic() - started < 0.3


class TestInMemoryAppointmentStore:
    """Tests for the store's own overlap constraint."""

    def test_overlapping_insert_is_rejected(self):
        store = InMemoryAppointmentStore([booking("10:00", "11:00")])

        with pytest.raises(SlotUnavailable):
            store.add_appointment(booking("10:30", "11:30"))

    def test_cancelled_records_can_overlap(self):
        store = InMemoryAppointmentStore([booking("10:00", "11:00")])

        store.add_appointment(booking("10:00", "11:00", AppointmentStatus.CANCELLED))

        assert len(store.list_appointments("anna", MONDAY)) == 2

    def test_cancel_frees_the_slot(self):
        existing = booking("10:00", "11:00")
        store = InMemoryAppointmentStore([existing])
        guard = BookingCommitGuard(store)

        cancelled = store.update_appointment(replace(existing, status=AppointmentStatus.CANCELLED))
        guard.commit_booking("anna", MONDAY, iv("10:00", "11:00"))

        assert cancelled.status is AppointmentStatus.CANCELLED
        assert cancelled.appointment_id == existing.appointment_id

    def test_reviving_into_a_taken_slot_is_rejected(self):
        old = booking("10:00", "11:00", AppointmentStatus.CANCELLED)
        store = InMemoryAppointmentStore([old, booking("10:30", "11:30")])

        with pytest.raises(SlotUnavailable):
            store.update_appointment(replace(old, status=AppointmentStatus.CONFIRMED))

    def test_unknown_appointment(self):
        with pytest.raises(UnknownAppointment):
            InMemoryAppointmentStore().update_appointment(booking("10:00", "11:00"))

        with pytest.raises(UnknownAppointment):
            InMemoryAppointmentStore().get_appointment("missing")

    def test_list_returns_a_copy(self):
        store = InMemoryAppointmentStore([booking("10:00", "11:00")])

        store.list_appointments("anna", MONDAY).clear()

        assert len(store.list_appointments("anna", pendulum.date(2024, 11, 25))) == 1

    def test_update_can_move_to_another_day(self):
        existing = booking("10:00", "11:00")
        store = InMemoryAppointmentStore([existing])
        tuesday = MONDAY.add(days=1)

        store.update_appointment(replace(existing, date=tuesday))

        assert store.list_appointments("anna", MONDAY) == []
        assert store.get_appointment(existing.appointment_id).date == tuesday

    def test_failed_write_leaves_store_unchanged(self):
        """A write that cannot be persisted must not block the slot."""

        class FailingStore(InMemoryAppointmentStore):
            def _after_write(self):
                raise OSError("disk full")

        existing = booking("10:00", "11:00")
        store = FailingStore([existing])

        with pytest.raises(OSError):
            BookingCommitGuard(store).commit_booking("anna", MONDAY, iv("11:00", "11:30"))
        with pytest.raises(OSError):
            store.update_appointment(replace(existing, status=AppointmentStatus.CANCELLED))

        assert store.list_appointments("anna", MONDAY) == [existing]


class TestRescheduleBooking:
    """Tests for BookingCommitGuard.reschedule_booking."""

    def test_move_within_the_same_day(self):
        existing = booking("10:00", "11:00")
        store = InMemoryAppointmentStore([existing])

        moved = BookingCommitGuard(store).reschedule_booking(existing.appointment_id, MONDAY, iv("11:00", "12:00"))

        assert moved.appointment_id == existing.appointment_id
        assert moved.interval == iv("11:00", "12:00")
        assert moved.status is AppointmentStatus.PENDING
        assert store.list_appointments("anna", MONDAY) == [moved]

    def test_own_time_does_not_block_the_new_slot(self):
        existing = booking("10:00", "11:00")
        store = InMemoryAppointmentStore([existing])

        moved = BookingCommitGuard(store).reschedule_booking(
            existing.appointment_id, MONDAY, iv("10:30", "11:30"), schedule=make_schedule()
        )

        assert moved.interval == iv("10:30", "11:30")

    def test_move_to_another_day(self):
        existing = booking("10:00", "11:00")
        store = InMemoryAppointmentStore([existing])
        tuesday = MONDAY.add(days=1)

        moved = BookingCommitGuard(store).reschedule_booking(
            existing.appointment_id, tuesday, iv("15:00", "16:00"), AppointmentStatus.CONFIRMED
        )

        assert moved.date == tuesday
        assert moved.status is AppointmentStatus.CONFIRMED
        assert store.list_appointments("anna", MONDAY) == []

    def test_taken_slot_is_rejected(self):
        existing = booking("10:00", "11:00")
        other = booking("12:00", "13:00")
        store = InMemoryAppointmentStore([existing, other])

        with pytest.raises(SlotUnavailable):
            BookingCommitGuard(store).reschedule_booking(existing.appointment_id, MONDAY, iv("12:30", "13:30"))

        assert store.get_appointment(existing.appointment_id) == existing

    def test_schedule_rejects_lunch(self):
        existing = booking("10:00", "11:00")
        guard = BookingCommitGuard(InMemoryAppointmentStore([existing]))

        with pytest.raises(SlotUnavailable):
            guard.reschedule_booking(existing.appointment_id, MONDAY, iv("13:00", "14:00"), schedule=make_schedule())

    def test_cancelled_booking_cannot_be_moved(self):
        existing = booking("10:00", "11:00", AppointmentStatus.CANCELLED)
        guard = BookingCommitGuard(InMemoryAppointmentStore([existing]))

        with pytest.raises(ValueError, match="Cannot reschedule a cancelled appointment"):
            guard.reschedule_booking(existing.appointment_id, MONDAY, iv("11:00", "12:00"))

    def test_unknown_appointment(self):
        with pytest.raises(UnknownAppointment):
            BookingCommitGuard(InMemoryAppointmentStore()).reschedule_booking("missing", MONDAY, iv("10:00", "11:00"))

    def test_racing_moves_into_the_same_slot(self):
        """Two bookings moved into one free slot at once: exactly one lands."""
        first, second = booking("09:00", "09:30"), booking("09:30", "10:00")
        store = InMemoryAppointmentStore([first, second])
        guard = BookingCommitGuard(store)
        barrier = threading.Barrier(2)
        results, errors = [], []

        def attempt(appointment_id):
            barrier.wait()
            try:
                results.append(guard.reschedule_booking(appointment_id, MONDAY, iv("15:00", "15:30")))
            except SlotUnavailable as exc:
                errors.append(exc)

        threads = [threading.Thread(target=attempt, args=(a.appointment_id,)) for a in (first, second)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(results) == 1
        assert len(errors) == 1
        live = [a for a in store.list_appointments("anna", MONDAY) if a.interval == iv("15:00", "15:30")]
        assert len(live) == 1


class TestCancelBooking:
    """Tests for BookingCommitGuard.cancel_booking."""

    def test_cancel_frees_the_slot(self):
        existing = booking("10:00", "11:00")
        store = InMemoryAppointmentStore([existing])
        guard = BookingCommitGuard(store)

        cancelled = guard.cancel_booking(existing.appointment_id)
        again = guard.commit_booking("anna", MONDAY, iv("10:00", "11:00"))

        assert cancelled.status is AppointmentStatus.CANCELLED
        assert again.blocks_availability

    @pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED])
    def test_only_live_bookings_can_be_cancelled(self, status):
        existing = booking("10:00", "11:00", status)
        guard = BookingCommitGuard(InMemoryAppointmentStore([existing]))

        with pytest.raises(ValueError, match="Cannot cancel"):
            guard.cancel_booking(existing.appointment_id)
