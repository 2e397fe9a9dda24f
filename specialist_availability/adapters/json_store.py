"""
Appointment store persisted to a JSON file.

Records use the field names of the booking portal's appointment table:
``id``, ``specialistId``, ``date``, ``startTime``, ``endTime``, ``status``
and an optional ``serviceId``.

Every read and write holds an exclusive lock on ``<file>.lock`` and reloads
the file first, so several processes can share one appointments file.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List

from filelock import FileLock, Timeout

from ..domain.exceptions import UpstreamReadFailure
from ..domain.intervals import format_minutes
from ..domain.models import Appointment
from .memory_store import InMemoryAppointmentStore

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0


class JsonAppointmentStore(InMemoryAppointmentStore):
    """
    File-backed store: re-reads the file under a lock, rewrites it on change.
    """

    def __init__(self, path: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_lock = FileLock(f"{self.path}.lock", timeout=lock_timeout)
        super().__init__()
        # Fail fast on an unreadable file
        with self._locked():
            logger.debug("Opened appointment file %s", self.path)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            try:
                self._file_lock.acquire()
            except Timeout as exc:
                raise UpstreamReadFailure(
                    f"Appointment file {self.path} is locked by another process"
                ) from exc
            try:
                self._replace_all(self._load())
                yield
            finally:
                self._file_lock.release()

    def _load(self) -> List[Appointment]:
        if not self.path.exists():
            logger.debug("Appointment file %s does not exist yet, starting empty", self.path)
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise UpstreamReadFailure(f"Could not read appointments from {self.path}: {exc}") from exc

        if not isinstance(records, list):
            raise UpstreamReadFailure(f"Appointment file {self.path} must contain a list")

        try:
            appointments = [self._from_record(record) for record in records]
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamReadFailure(f"Malformed appointment in {self.path}: {exc}") from exc

        logger.debug("Loaded %d appointment(s) from %s", len(appointments), self.path)
        return appointments

    def _after_write(self) -> None:
        records = [self._to_record(a) for a in self._snapshot()]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    @staticmethod
    def _from_record(record: Dict[str, Any]) -> Appointment:
        optional = {}
        if record.get("id"):
            optional["appointment_id"] = str(record["id"])
        return Appointment(
            specialist_id=str(record["specialistId"]),
            date=record["date"],
            start_time=record["startTime"],
            end_time=record["endTime"],
            status=record.get("status", "pending"),
            service_id=record.get("serviceId"),
            **optional,
        )

    @staticmethod
    def _to_record(appointment: Appointment) -> Dict[str, Any]:
        return {
            "id": appointment.appointment_id,
            "specialistId": appointment.specialist_id,
            "date": appointment.date.isoformat(),
            "startTime": format_minutes(appointment.start_time),
            "endTime": format_minutes(appointment.end_time),
            "status": appointment.status.value,
            "serviceId": appointment.service_id,
        }
