from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from dataclasses import replace  # noqa: E402
from datetime import date, datetime, time  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from caretasks.domain.clock import FixedClock  # noqa: E402
from caretasks.domain.entities import Actor, TaskOccurrence, TaskSchedule  # noqa: E402
from caretasks.domain.enums import CascadePolicy, Frequency, OccurrenceStatus, Role  # noqa: E402
from caretasks.domain.errors import ConcurrentUpdateError, NotFoundError  # noqa: E402


class FakeRepo:
    def __init__(self) -> None:
        self.schedules: dict[int, TaskSchedule] = {}
        self.occurrences: dict[int, TaskOccurrence] = {}
        self.assignments: set[tuple[str, str]] = set()
        self.insert_calls = 0
        self._schedule_id = 1
        self._occurrence_id = 1

    def create_schedule(self, schedule):
        saved = replace(schedule, id=self._schedule_id)
        self.schedules[saved.id] = saved
        self._schedule_id += 1
        return saved

    def update_schedule(self, schedule):
        if schedule.id not in self.schedules:
            raise NotFoundError(str(schedule.id))
        self.schedules[schedule.id] = schedule
        return schedule

    def get_schedule(self, schedule_id):
        return self.schedules.get(schedule_id)

    def find_active_schedules(self, as_of):
        return [s for s in self.schedules.values() if s.window_end >= as_of]

    def delete_schedule(self, schedule_id, cascade_policy):
        if schedule_id not in self.schedules:
            raise NotFoundError(str(schedule_id))
        removable = {OccurrenceStatus.PENDING, OccurrenceStatus.MISSED}
        removed = 0
        for occ in list(self.occurrences.values()):
            if occ.schedule_id != schedule_id:
                continue
            if cascade_policy == CascadePolicy.DELETE_ALL or occ.status in removable:
                del self.occurrences[occ.id]
                removed += 1
            else:
                self.occurrences[occ.id] = replace(occ, schedule_id=None)
        del self.schedules[schedule_id]
        return removed

    def get_occurrence(self, occurrence_id):
        return self.occurrences.get(occurrence_id)

    def list_occurrences(self, caregiver_id, start, end, filters=None):
        found = [
            o
            for o in self.occurrences.values()
            if o.caregiver_id == caregiver_id and start <= o.occurrence_date <= end
        ]
        if filters and filters.status:
            found = [o for o in found if o.status == filters.status]
        return sorted(found, key=lambda o: o.scheduled_at)

    def list_overdue_occurrences(self, cutoff):
        return [
            o
            for o in self.occurrences.values()
            if o.status == OccurrenceStatus.PENDING and o.deadline_at < cutoff
        ]

    def insert_occurrence_if_absent(self, occurrence):
        self.insert_calls += 1
        for existing in self.occurrences.values():
            if (existing.schedule_id, existing.occurrence_date) == (
                occurrence.schedule_id,
                occurrence.occurrence_date,
            ):
                return False
        saved = replace(occurrence, id=self._occurrence_id)
        self.occurrences[saved.id] = saved
        self._occurrence_id += 1
        return True

    def update_occurrence_status(
        self, occurrence_id, new_status, completed_at, proof, expected_status=None, updated_at=None
    ):
        current = self.occurrences.get(occurrence_id)
        if current is None:
            raise NotFoundError(str(occurrence_id))
        if expected_status is not None and current.status != expected_status:
            raise ConcurrentUpdateError(str(occurrence_id))
        updated = replace(
            current,
            status=new_status,
            completed_at=completed_at,
            proof=proof,
            updated_at=updated_at or current.updated_at,
        )
        self.occurrences[occurrence_id] = updated
        return updated

    def delete_pending_occurrences(self, schedule_id, from_date):
        doomed = [
            o.id
            for o in self.occurrences.values()
            if o.schedule_id == schedule_id
            and o.status == OccurrenceStatus.PENDING
            and o.occurrence_date >= from_date
            and o.proof is None
        ]
        for occurrence_id in doomed:
            del self.occurrences[occurrence_id]
        return len(doomed)

    def refresh_retained_occurrences(self, schedule, from_date, updated_at=None):
        retained = [
            o
            for o in self.occurrences.values()
            if o.schedule_id == schedule.id
            and o.status == OccurrenceStatus.PENDING
            and o.occurrence_date >= from_date
            and o.proof is not None
        ]
        for occ in retained:
            self.occurrences[occ.id] = replace(
                occ,
                title=schedule.title,
                description=schedule.description,
                caregiver_id=schedule.caregiver_id,
                patient_id=schedule.patient_id,
                proof_requirement=schedule.proof_requirement,
                scheduled_at=datetime.combine(occ.occurrence_date, schedule.time_of_day_start),
                deadline_at=datetime.combine(occ.occurrence_date, schedule.time_of_day_end),
                updated_at=updated_at or occ.updated_at,
            )
        return len(retained)

    def has_active_assignment(self, caregiver_id, patient_id):
        return (caregiver_id, patient_id) in self.assignments


class FakeBlobStore:
    def __init__(self, paths: set[str] | None = None) -> None:
        self.paths = set(paths or ())

    def exists(self, path: str) -> bool:
        return path in self.paths

    def save(self, occurrence_id: int, user_id: str, filename: str, data: bytes) -> str:
        path = f"task-proofs/{occurrence_id}-{user_id}-{filename}"
        self.paths.add(path)
        return path


def make_schedule(**overrides) -> TaskSchedule:
    values = dict(
        id=1,
        title="Morning medication",
        description="Blood pressure pills with water",
        caregiver_id="cg-1",
        patient_id="pt-1",
        window_start=date(2026, 3, 2),
        window_end=date(2026, 3, 4),
        time_of_day_start=time(9, 0),
        time_of_day_end=time(10, 0),
        frequency=Frequency.DAILY,
    )
    values.update(overrides)
    return TaskSchedule(**values)


@pytest.fixture
def supervisor() -> Actor:
    return Actor(user_id="sup-1", role=Role.SUPERVISOR)


@pytest.fixture
def caregiver() -> Actor:
    return Actor(user_id="cg-1", role=Role.CAREGIVER)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 2, 8, 0))


@pytest.fixture
def repo() -> FakeRepo:
    fake = FakeRepo()
    fake.assignments.add(("cg-1", "pt-1"))
    return fake


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore({"task-proofs/1-cg-1-photo.jpg", "task-proofs/1-cg-1-note.m4a"})


@pytest.fixture
def session_factory():
    from caretasks.infra import models  # noqa: F401
    from caretasks.infra.db import Base, build_engine

    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()
