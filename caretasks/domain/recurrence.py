"""Turn a task schedule into the dated occurrences it requires."""
from __future__ import annotations

from datetime import date, datetime, timedelta

from .entities import TaskOccurrence, TaskSchedule
from .enums import Frequency, OccurrenceStatus
from .errors import EmptyRangeError, InvalidScheduleError


def validate_schedule(schedule: TaskSchedule) -> None:
    if not schedule.title.strip():
        raise InvalidScheduleError("title is required")
    if not schedule.caregiver_id:
        raise InvalidScheduleError("caregiver is required")
    if not schedule.patient_id:
        raise InvalidScheduleError("patient is required")
    if schedule.window_end < schedule.window_start:
        raise InvalidScheduleError("window end cannot be before window start")
    if schedule.time_of_day_end <= schedule.time_of_day_start:
        raise InvalidScheduleError("end time must be after start time")
    if schedule.frequency == Frequency.WEEKLY and not schedule.weekdays:
        raise InvalidScheduleError("weekly schedules need at least one weekday")
    if schedule.frequency != Frequency.WEEKLY and schedule.weekdays:
        raise InvalidScheduleError(f"{schedule.frequency.value} schedules take no weekdays")


def occurrence_dates(schedule: TaskSchedule, range_start: date, range_end: date) -> list[date]:
    """Dates in ``[range_start, range_end]`` that need an occurrence, ascending.

    Raises ``InvalidScheduleError`` for a broken schedule and ``EmptyRangeError``
    when the range does not overlap the schedule window.
    """
    validate_schedule(schedule)

    start = max(range_start, schedule.window_start)
    end = min(range_end, schedule.window_end)
    if end < start:
        raise EmptyRangeError(
            f"range {range_start.isoformat()}..{range_end.isoformat()} is outside "
            f"window {schedule.window_start.isoformat()}..{schedule.window_end.isoformat()}"
        )

    if schedule.frequency == Frequency.ONCE:
        day = schedule.window_start
        return [day] if start <= day <= end else []

    dates: list[date] = []
    current = start
    while current <= end:
        if schedule.frequency == Frequency.DAILY or current.weekday() in schedule.weekdays:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def build_occurrence(schedule: TaskSchedule, day: date, created_at: datetime | None = None) -> TaskOccurrence:
    return TaskOccurrence(
        id=None,
        schedule_id=schedule.id,
        occurrence_date=day,
        title=schedule.title,
        description=schedule.description,
        caregiver_id=schedule.caregiver_id,
        patient_id=schedule.patient_id,
        proof_requirement=schedule.proof_requirement,
        scheduled_at=datetime.combine(day, schedule.time_of_day_start),
        deadline_at=datetime.combine(day, schedule.time_of_day_end),
        status=OccurrenceStatus.PENDING,
        created_at=created_at,
        updated_at=created_at,
    )
