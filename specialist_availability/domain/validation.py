"""
Structural validation of work schedules.

Schedules are checked once, when they cross into the engine, so the
resolver can rely on well-formed intervals.
"""

from __future__ import annotations

import logging
from typing import List

from .exceptions import InvalidScheduleConfig
from .intervals import format_minutes
from .models import ALLOWED_HORIZON_MONTHS, Weekday, WorkSchedule

logger = logging.getLogger(__name__)


def collect_schedule_problems(schedule: WorkSchedule) -> List[str]:
    """
    Collect every rule the schedule violates.

    Returns:
        List of human-readable problem descriptions (empty when valid)
    """
    problems: List[str] = []
    prefix = f"specialist {schedule.specialist_id}"

    if schedule.booking_horizon_months not in ALLOWED_HORIZON_MONTHS:
        allowed = ", ".join(str(m) for m in ALLOWED_HORIZON_MONTHS)
        problems.append(
            f"{prefix}: booking horizon must be one of {allowed} months, "
            f"got {schedule.booking_horizon_months}"
        )

    seen: set[Weekday] = set()
    for work_day in schedule.work_days:
        day_name = work_day.weekday.name.capitalize()
        if work_day.weekday in seen:
            problems.append(f"{prefix}: duplicate work day for {day_name}")
        seen.add(work_day.weekday)

        if work_day.start_time >= work_day.end_time:
            problems.append(
                f"{prefix}: {day_name} starts at {format_minutes(work_day.start_time)} "
                f"but ends at {format_minutes(work_day.end_time)}"
            )
            continue

        for lunch in work_day.lunch_breaks:
            span = f"{format_minutes(lunch.start_time)}-{format_minutes(lunch.end_time)}"
            if lunch.start_time >= lunch.end_time:
                problems.append(f"{prefix}: {day_name} lunch break {span} is empty or reversed")
            elif lunch.start_time < work_day.start_time or lunch.end_time > work_day.end_time:
                problems.append(
                    f"{prefix}: {day_name} lunch break {span} lies outside working hours "
                    f"{format_minutes(work_day.start_time)}-{format_minutes(work_day.end_time)}"
                )

    missing = [day.name.capitalize() for day in Weekday if day not in seen]
    if missing:
        problems.append(f"{prefix}: missing work days for {', '.join(missing)}")

    for vacation in schedule.vacations:
        if vacation.start_date > vacation.end_date:
            problems.append(
                f"{prefix}: vacation {vacation.start_date.isoformat()} - "
                f"{vacation.end_date.isoformat()} ends before it starts"
            )

    return problems


def validate_schedule(schedule: WorkSchedule) -> WorkSchedule:
    """
    Ensure a schedule is well-formed before it reaches the resolver.

    Returns:
        The same schedule, unchanged

    Raises:
        InvalidScheduleConfig: If any rule is violated
    """
    problems = collect_schedule_problems(schedule)
    if problems:
        logger.warning("Rejected schedule for %s: %d problem(s)", schedule.specialist_id, len(problems))
        raise InvalidScheduleConfig(problems)
    return schedule
