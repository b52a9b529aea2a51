from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, time, timedelta

from caretasks.domain.clock import Clock
from caretasks.domain.entities import Actor, ExpansionResult, TaskSchedule
from caretasks.domain.enums import CascadePolicy, Frequency, ProofKind, Role, Weekday
from caretasks.domain.errors import (
    AuthorizationError,
    EmptyRangeError,
    InvalidScheduleError,
    NotFoundError,
)
from caretasks.domain.ports import ScheduleRepository
from caretasks.domain.recurrence import build_occurrence, occurrence_dates, validate_schedule

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = {
    "title",
    "description",
    "caregiver_id",
    "patient_id",
    "window_start",
    "window_end",
    "time_of_day_start",
    "time_of_day_end",
    "frequency",
    "weekdays",
    "proof_requirement",
}


class ScheduleService:
    def __init__(self, repo: ScheduleRepository, clock: Clock, horizon_days: int = 14) -> None:
        self._repo = repo
        self._clock = clock
        self._horizon_days = horizon_days

    def get_schedule(self, schedule_id: int) -> TaskSchedule:
        schedule = self._repo.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError(f"schedule {schedule_id} not found")
        return schedule

    def create_schedule(self, actor: Actor, data: dict) -> TaskSchedule:
        _require_supervisor(actor)
        normalized = self._normalize_data(data)
        missing = SCHEDULE_FIELDS - {"description", "weekdays", "proof_requirement"} - set(normalized)
        if missing:
            raise InvalidScheduleError(f"missing fields: {', '.join(sorted(missing))}")

        now = self._clock.now()
        schedule = TaskSchedule(
            id=None,
            description=normalized.pop("description", ""),
            created_by=actor.user_id,
            created_at=now,
            updated_at=now,
            **normalized,
        )
        self._check(schedule)
        saved = self._repo.create_schedule(schedule)
        logger.info("Schedule %s created by %s for caregiver %s", saved.id, actor.user_id, saved.caregiver_id)
        self._materialize_upcoming(saved)
        return saved

    def update_schedule(self, actor: Actor, schedule_id: int, data: dict) -> TaskSchedule:
        _require_supervisor(actor)
        current = self.get_schedule(schedule_id)
        changes = self._normalize_data(data)
        if changes.get("frequency", Frequency.WEEKLY) != Frequency.WEEKLY:
            changes.setdefault("weekdays", frozenset())
        now = self._clock.now()
        schedule = replace(current, updated_at=now, **changes)
        self._check(schedule)
        saved = self._repo.update_schedule(schedule)

        # Pending occurrences from today on are rebuilt from the edited schedule;
        # those holding proof from before a revert keep their row and get the new fields.
        today = self._clock.today()
        dropped = self._repo.delete_pending_occurrences(schedule_id, today)
        refreshed = self._repo.refresh_retained_occurrences(saved, today, now)
        logger.info(
            "Schedule %s updated by %s, %d pending occurrences rebuilt, %d refreshed",
            schedule_id,
            actor.user_id,
            dropped,
            refreshed,
        )
        self._materialize_upcoming(saved)
        return saved

    def delete_schedule(self, actor: Actor, schedule_id: int, cascade_policy: CascadePolicy | str) -> int:
        _require_supervisor(actor)
        policy = CascadePolicy(cascade_policy)
        removed = self._repo.delete_schedule(schedule_id, policy)
        logger.info(
            "Schedule %s deleted by %s (%s), %d occurrences removed",
            schedule_id,
            actor.user_id,
            policy.value,
            removed,
        )
        return removed

    def materialize(self, schedule: TaskSchedule, range_start: date, range_end: date) -> ExpansionResult:
        dates = occurrence_dates(schedule, range_start, range_end)
        created_at = self._clock.now()
        created = 0
        for day in dates:
            if self._repo.insert_occurrence_if_absent(build_occurrence(schedule, day, created_at)):
                created += 1
        result = ExpansionResult(
            schedule_id=schedule.id,
            dates=dates,
            created=created,
            skipped=len(dates) - created,
        )
        logger.debug("Schedule %s expanded: %d created, %d existing", schedule.id, result.created, result.skipped)
        return result

    def materialize_active(
        self,
        as_of: date | None = None,
        horizon_days: int | None = None,
    ) -> list[ExpansionResult]:
        as_of = as_of or self._clock.today()
        horizon = self._horizon_days if horizon_days is None else horizon_days
        range_end = as_of + timedelta(days=horizon)

        results = []
        for schedule in self._repo.find_active_schedules(as_of):
            try:
                results.append(self.materialize(schedule, as_of, range_end))
            except EmptyRangeError:
                logger.debug("Schedule %s has nothing to expand before %s", schedule.id, range_end)
            except InvalidScheduleError as exc:
                logger.error("Stored schedule %s is invalid: %s", schedule.id, exc)
        logger.info(
            "Materialized %d schedules up to %s, %d new occurrences",
            len(results),
            range_end,
            sum(result.created for result in results),
        )
        return results

    def _materialize_upcoming(self, schedule: TaskSchedule) -> ExpansionResult | None:
        today = self._clock.today()
        start = max(today, schedule.window_start)
        end = today + timedelta(days=self._horizon_days)
        if end < start:
            return None
        try:
            return self.materialize(schedule, start, end)
        except EmptyRangeError:
            return None

    def _check(self, schedule: TaskSchedule) -> None:
        validate_schedule(schedule)
        if not self._repo.has_active_assignment(schedule.caregiver_id, schedule.patient_id):
            raise InvalidScheduleError(
                f"caregiver {schedule.caregiver_id} is not assigned to patient {schedule.patient_id}"
            )

    def _normalize_data(self, data: dict) -> dict:
        unknown = set(data) - SCHEDULE_FIELDS
        if unknown:
            raise InvalidScheduleError(f"unknown fields: {', '.join(sorted(unknown))}")

        normalized = dict(data)
        try:
            if "frequency" in normalized:
                normalized["frequency"] = Frequency(normalized["frequency"])
            if "weekdays" in normalized:
                normalized["weekdays"] = frozenset(Weekday(day) for day in normalized["weekdays"] or ())
            if "proof_requirement" in normalized and normalized["proof_requirement"] is not None:
                normalized["proof_requirement"] = ProofKind(normalized["proof_requirement"])
            for key in ("window_start", "window_end"):
                if isinstance(normalized.get(key), str):
                    normalized[key] = date.fromisoformat(normalized[key])
            for key in ("time_of_day_start", "time_of_day_end"):
                if isinstance(normalized.get(key), str):
                    normalized[key] = time.fromisoformat(normalized[key])
        except ValueError as exc:
            raise InvalidScheduleError(str(exc)) from exc
        if "title" in normalized:
            normalized["title"] = normalized["title"].strip()
        if "description" in normalized:
            normalized["description"] = (normalized["description"] or "").strip()
        return normalized


def _require_supervisor(actor: Actor) -> None:
    if actor.role != Role.SUPERVISOR:
        raise AuthorizationError(f"{actor.role.value} {actor.user_id} cannot manage schedules")
