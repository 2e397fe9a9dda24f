"""
Application services layer.
"""

from .availability_service import AvailabilityService, ScheduleSourceProtocol
from .booking import AppointmentStoreProtocol, BookingCommitGuard
