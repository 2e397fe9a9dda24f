"""
Loading work schedules from a YAML document.

The document is parsed with pydantic, converted to immutable domain
schedules and validated before anything is handed to the engine.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..domain.exceptions import InvalidScheduleConfig, UpstreamReadFailure
from ..domain.intervals import parse_minutes
from ..domain.models import (
    DEFAULT_HORIZON_MONTHS,
    LunchBreak,
    Vacation,
    Weekday,
    WorkDay,
    WorkSchedule,
)
from ..domain.validation import collect_schedule_problems

logger = logging.getLogger(__name__)

_INT_TAG = "tag:yaml.org,2002:int"


class ScheduleLoader(yaml.SafeLoader):
    """
    Safe loader that keeps unquoted times such as 13:00 as strings.

    YAML 1.1 reads them as base-60 integers, which would make 13:00 and a
    bare 780 indistinguishable.
    """


ScheduleLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _INT_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ScheduleLoader.add_implicit_resolver(
    _INT_TAG, re.compile(r"^[-+]?(?:0|[1-9][0-9_]*)$"), list("-+0123456789")
)


class LunchBreakDocument(BaseModel):
    """Lunch break as written in the schedules file."""
    start_time: str
    end_time: str
    enabled: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Reject anything that is not an HH:MM time of day."""
        parse_minutes(value)
        return value


class WorkDayDocument(BaseModel):
    """Weekday template as written in the schedules file."""
    weekday: Union[int, str]
    active: bool = False
    start_time: str = "09:00"
    end_time: str = "18:00"
    lunch_breaks: List[LunchBreakDocument] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Reject anything that is not an HH:MM time of day."""
        parse_minutes(value)
        return value

    @field_validator("weekday")
    @classmethod
    def validate_weekday(cls, value: Union[int, str]) -> int:
        """Accept 0-6 (0=Sunday) or an English day name."""
        if isinstance(value, str) and not value.isdigit():
            try:
                return Weekday[value.strip().upper()].value
            except KeyError:
                raise ValueError(f"Unknown weekday name: {value!r}") from None
        number = int(value)
        if number not in range(7):
            raise ValueError(f"weekday must be between 0 and 6, got {number}")
        return number


class VacationDocument(BaseModel):
    """Vacation as written in the schedules file."""
    start_date: date
    end_date: date
    enabled: bool = True
    description: Optional[str] = None


class ScheduleDocument(BaseModel):
    """One specialist's schedule as written in the schedules file."""
    specialist_id: str
    enabled: bool = True
    booking_horizon_months: int = DEFAULT_HORIZON_MONTHS
    work_days: List[WorkDayDocument]
    vacations: List[VacationDocument] = Field(default_factory=list)

    def to_domain(self) -> WorkSchedule:
        """Convert to the immutable domain model."""
        return WorkSchedule(
            specialist_id=self.specialist_id,
            enabled=self.enabled,
            booking_horizon_months=self.booking_horizon_months,
            work_days=tuple(
                WorkDay(
                    weekday=Weekday(day.weekday),
                    active=day.active,
                    start_time=day.start_time,
                    end_time=day.end_time,
                    lunch_breaks=tuple(
                        LunchBreak(
                            start_time=lunch.start_time,
                            end_time=lunch.end_time,
                            enabled=lunch.enabled,
                        )
                        for lunch in day.lunch_breaks
                    ),
                )
                for day in self.work_days
            ),
            vacations=tuple(
                Vacation(
                    start_date=vacation.start_date,
                    end_date=vacation.end_date,
                    enabled=vacation.enabled,
                    description=vacation.description,
                )
                for vacation in self.vacations
            ),
        )


class SchedulesFile(BaseModel):
    """Root of the schedules file."""
    schedules: List[ScheduleDocument] = Field(default_factory=list)


class ScheduleRepository:
    """
    Read-only access to validated schedules, keyed by specialist id.
    """

    def __init__(self, schedules: Dict[str, WorkSchedule]):
        self._schedules = dict(schedules)

    @classmethod
    def load_from_yaml(cls, path: Path) -> "ScheduleRepository":
        """
        Load and validate every schedule in a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            UpstreamReadFailure: If the file cannot be read or parsed
            InvalidScheduleConfig: If any schedule breaks a rule
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Schedules file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.load(f, Loader=ScheduleLoader) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise UpstreamReadFailure(f"Could not read schedules from {path}: {exc}") from exc

        return cls.from_mapping(data)

    @classmethod
    def from_mapping(cls, data) -> "ScheduleRepository":
        """Build a repository from already-parsed document data."""
        if not isinstance(data, dict):
            raise InvalidScheduleConfig(["schedules file must contain a mapping at the root level"])

        try:
            document = SchedulesFile(**data)
        except ValidationError as exc:
            raise InvalidScheduleConfig(
                f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            ) from exc

        schedules: Dict[str, WorkSchedule] = {}
        problems: List[str] = []
        for entry in document.schedules:
            if entry.specialist_id in schedules:
                problems.append(f"duplicate schedule for specialist {entry.specialist_id}")
                continue
            schedule = entry.to_domain()
            problems.extend(collect_schedule_problems(schedule))
            schedules[entry.specialist_id] = schedule

        if problems:
            raise InvalidScheduleConfig(problems)

        logger.info("Loaded %d schedule(s)", len(schedules))
        return cls(schedules)

    def get_schedule(self, specialist_id: str) -> WorkSchedule | None:
        """Get a specialist's schedule, or None if none is configured."""
        return self._schedules.get(specialist_id)

    def specialist_ids(self) -> List[str]:
        return sorted(self._schedules)
