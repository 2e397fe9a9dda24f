"""
Domain layer - pure business logic without I/O.
"""

from .day_resolver import explain_day, resolve_day_availability
from .exceptions import (
    AvailabilityError,
    InvalidScheduleConfig,
    SlotUnavailable,
    UnknownAppointment,
    UnknownSpecialist,
    UpstreamReadFailure,
)
from .horizon import HorizonWalker, horizon_end
from .intervals import Interval, contains, overlaps, subtract, subtract_all, union_all
from .models import (
    Appointment,
    AppointmentStatus,
    AvailabilityReason,
    AvailableSlot,
    DayAvailability,
    LunchBreak,
    Service,
    Vacation,
    Weekday,
    WorkDay,
    WorkSchedule,
    default_work_schedule,
)
from .slot_enumerator import enumerate_slots, slot_step
from .validation import validate_schedule
