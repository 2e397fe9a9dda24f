"""
Domain-specific exception hierarchy for the availability engine.
"""

from __future__ import annotations

from typing import Iterable, List


class AvailabilityError(Exception):
    """Base class for all engine-level errors."""


class InvalidScheduleConfig(AvailabilityError):
    """Raised when a work schedule violates its structural rules."""

    def __init__(self, problems: Iterable[str]):
        self.problems: List[str] = list(problems)
        super().__init__("Invalid schedule configuration: " + "; ".join(self.problems))


class SlotUnavailable(AvailabilityError):
    """Raised when a slot was taken between enumeration and commit."""

    def __init__(self, specialist_id: str, date, interval):
        self.specialist_id = specialist_id
        self.date = date
        self.interval = interval
        super().__init__(
            f"Slot {interval} on {date} is no longer available for specialist {specialist_id}"
        )


class UpstreamReadFailure(AvailabilityError):
    """Raised when schedule or appointment data cannot be read."""


class UnknownSpecialist(AvailabilityError, LookupError):
    """Raised when no schedule is configured for a specialist."""


class UnknownAppointment(AvailabilityError, LookupError):
    """Raised when no stored appointment has the requested id."""
