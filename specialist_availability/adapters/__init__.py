"""
Adapters for schedule and appointment storage.
"""

from .json_store import JsonAppointmentStore
from .memory_store import InMemoryAppointmentStore
from .schedule_file import ScheduleRepository
