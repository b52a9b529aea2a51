from __future__ import annotations

from datetime import date, datetime, time

import pytest

from caretasks.domain.entities import ProofSubmission
from caretasks.domain.enums import CascadePolicy, Frequency, OccurrenceStatus, ProofKind, Weekday
from caretasks.domain.errors import AuthorizationError, InvalidScheduleError, NotFoundError
from caretasks.domain.proof_gate import ProofGate
from caretasks.services.occurrence_service import OccurrenceService
from caretasks.services.schedule_service import ScheduleService

from conftest import make_schedule

SCHEDULE_DATA = {
    "title": "Morning medication",
    "description": "Blood pressure pills with water",
    "caregiver_id": "cg-1",
    "patient_id": "pt-1",
    "window_start": date(2026, 3, 2),
    "window_end": date(2026, 3, 4),
    "time_of_day_start": time(9, 0),
    "time_of_day_end": time(10, 0),
    "frequency": "daily",
}


@pytest.fixture
def service(repo, clock) -> ScheduleService:
    return ScheduleService(repo, clock, horizon_days=14)


def test_create_materializes_whole_window(service, repo, supervisor) -> None:
    schedule = service.create_schedule(supervisor, SCHEDULE_DATA)

    occurrences = sorted(repo.occurrences.values(), key=lambda o: o.occurrence_date)
    assert schedule.id == 1
    assert schedule.created_by == "sup-1"
    assert [o.occurrence_date for o in occurrences] == [
        date(2026, 3, 2),
        date(2026, 3, 3),
        date(2026, 3, 4),
    ]
    assert [o.scheduled_at.time() for o in occurrences] == [time(9, 0)] * 3
    assert [o.deadline_at.time() for o in occurrences] == [time(10, 0)] * 3
    assert {o.status for o in occurrences} == {OccurrenceStatus.PENDING}


def test_create_accepts_string_values(service, supervisor) -> None:
    data = dict(
        SCHEDULE_DATA,
        window_start="2026-03-02",
        window_end="2026-03-31",
        time_of_day_start="18:30",
        time_of_day_end="19:00",
        frequency="weekly",
        weekdays=[0, 3],
        proof_requirement="audio",
    )

    schedule = service.create_schedule(supervisor, data)

    assert schedule.frequency == Frequency.WEEKLY
    assert schedule.weekdays == frozenset({Weekday.MONDAY, Weekday.THURSDAY})
    assert schedule.time_of_day_start == time(18, 30)
    assert schedule.proof_requirement.value == "audio"


def test_expanding_overlapping_ranges_never_duplicates(service, repo) -> None:
    schedule = repo.create_schedule(
        make_schedule(id=None, window_start=date(2026, 3, 1), window_end=date(2026, 3, 31))
    )

    first = service.materialize(schedule, date(2026, 3, 1), date(2026, 3, 10))
    second = service.materialize(schedule, date(2026, 3, 5), date(2026, 3, 15))

    assert first.created == 10
    assert second.created == 5
    assert second.skipped == 6
    assert len(repo.occurrences) == 15
    keys = [(o.schedule_id, o.occurrence_date) for o in repo.occurrences.values()]
    assert len(keys) == len(set(keys))


def test_materialize_active_skips_schedules_outside_horizon(service, repo, clock) -> None:
    repo.create_schedule(make_schedule(id=None, window_start=date(2026, 3, 2), window_end=date(2026, 3, 5)))
    repo.create_schedule(make_schedule(id=None, window_start=date(2026, 6, 1), window_end=date(2026, 6, 5)))
    repo.create_schedule(make_schedule(id=None, window_start=date(2026, 1, 1), window_end=date(2026, 1, 5)))

    results = service.materialize_active(horizon_days=7)

    assert [result.schedule_id for result in results] == [1]
    assert results[0].created == 4
    assert len(repo.occurrences) == 4


def test_only_supervisors_manage_schedules(service, caregiver) -> None:
    with pytest.raises(AuthorizationError):
        service.create_schedule(caregiver, SCHEDULE_DATA)
    with pytest.raises(AuthorizationError):
        service.delete_schedule(caregiver, 1, CascadePolicy.DELETE_ALL)


def test_caregiver_must_be_assigned_to_patient(service, repo, supervisor) -> None:
    with pytest.raises(InvalidScheduleError):
        service.create_schedule(supervisor, dict(SCHEDULE_DATA, patient_id="pt-9"))
    assert repo.schedules == {}


def test_invalid_payload_is_rejected(service, supervisor) -> None:
    with pytest.raises(InvalidScheduleError):
        service.create_schedule(supervisor, dict(SCHEDULE_DATA, frequency="weekly"))
    with pytest.raises(InvalidScheduleError):
        service.create_schedule(supervisor, dict(SCHEDULE_DATA, frequency="hourly"))
    with pytest.raises(InvalidScheduleError):
        service.create_schedule(supervisor, {"title": "Walk"})
    with pytest.raises(InvalidScheduleError):
        service.create_schedule(supervisor, dict(SCHEDULE_DATA, color="red"))


def test_update_rebuilds_pending_occurrences(service, repo, supervisor) -> None:
    schedule = service.create_schedule(supervisor, SCHEDULE_DATA)
    first = min(repo.occurrences.values(), key=lambda o: o.occurrence_date)
    repo.update_occurrence_status(
        first.id, OccurrenceStatus.COMPLETED, datetime(2026, 3, 2, 9, 15), None
    )

    service.update_schedule(supervisor, schedule.id, {"title": "Evening medication"})

    by_date = {o.occurrence_date: o for o in repo.occurrences.values()}
    assert len(by_date) == 3
    assert by_date[date(2026, 3, 2)].status == OccurrenceStatus.COMPLETED
    assert by_date[date(2026, 3, 2)].title == "Morning medication"
    assert by_date[date(2026, 3, 3)].title == "Evening medication"
    assert by_date[date(2026, 3, 4)].title == "Evening medication"


def test_update_unknown_schedule(service, supervisor) -> None:
    with pytest.raises(NotFoundError):
        service.update_schedule(supervisor, 42, {"title": "x"})


def test_delete_keeps_completed_history(service, repo, supervisor) -> None:
    schedule = service.create_schedule(supervisor, SCHEDULE_DATA)
    first = min(repo.occurrences.values(), key=lambda o: o.occurrence_date)
    repo.update_occurrence_status(
        first.id, OccurrenceStatus.COMPLETED, datetime(2026, 3, 2, 9, 15), None
    )

    removed = service.delete_schedule(supervisor, schedule.id, "keep_completed")

    assert removed == 2
    remaining = list(repo.occurrences.values())
    assert len(remaining) == 1
    assert remaining[0].schedule_id is None
    assert remaining[0].status == OccurrenceStatus.COMPLETED


def test_delete_requires_known_policy(service, supervisor) -> None:
    schedule = service.create_schedule(supervisor, SCHEDULE_DATA)

    with pytest.raises(ValueError):
        service.delete_schedule(supervisor, schedule.id, "cascade")


def test_update_keeps_retained_proof_row(service, repo, clock, supervisor, caregiver, blob_store) -> None:
    schedule = service.create_schedule(supervisor, dict(SCHEDULE_DATA, proof_requirement="photo"))
    occurrences = OccurrenceService(repo, ProofGate(blob_store), clock)
    clock.current = datetime(2026, 3, 2, 9, 30)
    occurrences.complete(caregiver, 1, ProofSubmission(ProofKind.PHOTO, "task-proofs/1-cg-1-photo.jpg"))
    occurrences.revert(supervisor, 1)
    clock.current = datetime(2026, 3, 2, 9, 40)

    service.update_schedule(
        supervisor,
        schedule.id,
        {"description": "Two pills after breakfast", "time_of_day_end": "10:30"},
    )

    retained = repo.occurrences[1]
    assert retained.status == OccurrenceStatus.PENDING
    assert retained.proof.storage_path == "task-proofs/1-cg-1-photo.jpg"
    assert retained.description == "Two pills after breakfast"
    assert retained.deadline_at == datetime(2026, 3, 2, 10, 30)
    assert retained.updated_at == datetime(2026, 3, 2, 9, 40)
    assert sorted(o.occurrence_date for o in repo.occurrences.values()) == [
        date(2026, 3, 2),
        date(2026, 3, 3),
        date(2026, 3, 4),
    ]

    again = occurrences.complete(caregiver, 1)
    assert again.status == OccurrenceStatus.COMPLETED


def test_switching_weekly_to_daily_clears_weekdays(service, repo, supervisor) -> None:
    schedule = service.create_schedule(
        supervisor, dict(SCHEDULE_DATA, frequency="weekly", weekdays=[Weekday.MONDAY])
    )
    assert len(repo.occurrences) == 1

    updated = service.update_schedule(supervisor, schedule.id, {"frequency": "daily"})

    assert updated.frequency == Frequency.DAILY
    assert updated.weekdays == frozenset()
    assert len(repo.occurrences) == 3


def test_update_records_clock_time(service, clock, supervisor) -> None:
    schedule = service.create_schedule(supervisor, SCHEDULE_DATA)
    clock.current = datetime(2026, 3, 2, 8, 45)

    updated = service.update_schedule(supervisor, schedule.id, {"title": "Evening medication"})

    assert schedule.created_at == datetime(2026, 3, 2, 8, 0)
    assert updated.created_at == datetime(2026, 3, 2, 8, 0)
    assert updated.updated_at == datetime(2026, 3, 2, 8, 45)
