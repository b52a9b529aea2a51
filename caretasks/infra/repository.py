from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from caretasks.domain.entities import Proof, TaskOccurrence, TaskSchedule
from caretasks.domain.enums import (
    CascadePolicy,
    Frequency,
    OccurrenceStatus,
    ProofKind,
    Weekday,
)
from caretasks.domain.errors import ConcurrentUpdateError, NotFoundError, RepositoryError
from caretasks.domain.filters import OccurrenceFilters

from .db import SessionLocal
from .models import CaregiverAssignmentModel, TaskOccurrenceModel, TaskScheduleModel, utcnow

logger = logging.getLogger(__name__)

STATUS_PENDING = OccurrenceStatus.PENDING.value
STATUS_MISSED = OccurrenceStatus.MISSED.value


def _encode_weekdays(weekdays: frozenset[Weekday]) -> str:
    return ",".join(str(int(day)) for day in sorted(weekdays))


def _decode_weekdays(raw: str | None) -> frozenset[Weekday]:
    if not raw:
        return frozenset()
    return frozenset(Weekday(int(part)) for part in raw.split(",") if part.strip())


def _to_schedule(model: TaskScheduleModel) -> TaskSchedule:
    return TaskSchedule(
        id=model.id,
        title=model.title,
        description=model.description,
        caregiver_id=model.caregiver_id,
        patient_id=model.patient_id,
        window_start=model.window_start,
        window_end=model.window_end,
        time_of_day_start=model.time_of_day_start,
        time_of_day_end=model.time_of_day_end,
        frequency=Frequency(model.frequency),
        weekdays=_decode_weekdays(model.weekdays),
        proof_requirement=ProofKind(model.proof_kind) if model.proof_kind else None,
        created_by=model.created_by,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _schedule_columns(schedule: TaskSchedule) -> dict:
    return {
        "title": schedule.title,
        "description": schedule.description,
        "caregiver_id": schedule.caregiver_id,
        "patient_id": schedule.patient_id,
        "window_start": schedule.window_start,
        "window_end": schedule.window_end,
        "time_of_day_start": schedule.time_of_day_start,
        "time_of_day_end": schedule.time_of_day_end,
        "frequency": schedule.frequency.value,
        "weekdays": _encode_weekdays(schedule.weekdays),
        "proof_kind": schedule.proof_requirement.value if schedule.proof_requirement else None,
    }


def _to_occurrence(model: TaskOccurrenceModel) -> TaskOccurrence:
    proof = None
    if model.proof_kind and model.proof_storage_path:
        proof = Proof(
            kind=ProofKind(model.proof_kind),
            storage_path=model.proof_storage_path,
            uploaded_by=model.proof_uploaded_by or "",
            uploaded_at=model.proof_uploaded_at,
        )
    return TaskOccurrence(
        id=model.id,
        schedule_id=model.schedule_id,
        occurrence_date=model.occurrence_date,
        title=model.title,
        description=model.description,
        caregiver_id=model.caregiver_id,
        patient_id=model.patient_id,
        proof_requirement=ProofKind(model.proof_requirement) if model.proof_requirement else None,
        scheduled_at=model.scheduled_at,
        deadline_at=model.deadline_at,
        status=OccurrenceStatus(model.status),
        completed_at=model.completed_at,
        proof=proof,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _proof_columns(proof: Optional[Proof]) -> dict:
    if proof is None:
        return {
            "proof_kind": None,
            "proof_storage_path": None,
            "proof_uploaded_by": None,
            "proof_uploaded_at": None,
        }
    return {
        "proof_kind": proof.kind.value,
        "proof_storage_path": proof.storage_path,
        "proof_uploaded_by": proof.uploaded_by,
        "proof_uploaded_at": proof.uploaded_at,
    }


def _audit_columns(created_at: Optional[datetime], updated_at: Optional[datetime]) -> dict:
    columns = {}
    if created_at is not None:
        columns["created_at"] = created_at
    if updated_at is not None or created_at is not None:
        columns["updated_at"] = updated_at or created_at
    return columns


def _apply_filters(stmt, filters: OccurrenceFilters | None) -> object:
    if filters is None:
        return stmt

    if filters.status:
        stmt = stmt.where(TaskOccurrenceModel.status == filters.status.value)

    if filters.patient_id:
        stmt = stmt.where(TaskOccurrenceModel.patient_id == filters.patient_id)

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                TaskOccurrenceModel.title.ilike(pattern),
                TaskOccurrenceModel.description.ilike(pattern),
            )
        )

    return stmt


class SqlScheduleRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Repository call failed: %s", exc)
            raise RepositoryError(str(exc)) from exc

    # schedules

    def create_schedule(self, schedule: TaskSchedule) -> TaskSchedule:
        with self._session() as session:
            model = TaskScheduleModel(
                created_by=schedule.created_by,
                **_schedule_columns(schedule),
                **_audit_columns(schedule.created_at, schedule.updated_at),
            )
            session.add(model)
            session.commit()
            session.refresh(model)
            return _to_schedule(model)

    def update_schedule(self, schedule: TaskSchedule) -> TaskSchedule:
        with self._session() as session:
            model = session.get(TaskScheduleModel, schedule.id)
            if not model:
                raise NotFoundError(f"schedule {schedule.id} not found")
            for key, value in _schedule_columns(schedule).items():
                setattr(model, key, value)
            if schedule.updated_at is not None:
                model.updated_at = schedule.updated_at
            session.commit()
            session.refresh(model)
            return _to_schedule(model)

    def get_schedule(self, schedule_id: int) -> Optional[TaskSchedule]:
        with self._session() as session:
            model = session.get(TaskScheduleModel, schedule_id)
            return _to_schedule(model) if model else None

    def find_active_schedules(self, as_of: date) -> list[TaskSchedule]:
        with self._session() as session:
            stmt = (
                select(TaskScheduleModel)
                .where(TaskScheduleModel.window_end >= as_of)
                .order_by(TaskScheduleModel.window_start.asc(), TaskScheduleModel.id.asc())
            )
            return [_to_schedule(model) for model in session.scalars(stmt)]

    def delete_schedule(self, schedule_id: int, cascade_policy: CascadePolicy) -> int:
        with self._session() as session:
            model = session.get(TaskScheduleModel, schedule_id)
            if not model:
                raise NotFoundError(f"schedule {schedule_id} not found")

            stmt = delete(TaskOccurrenceModel).where(TaskOccurrenceModel.schedule_id == schedule_id)
            if cascade_policy == CascadePolicy.KEEP_COMPLETED:
                stmt = stmt.where(TaskOccurrenceModel.status.in_([STATUS_PENDING, STATUS_MISSED]))
            removed = session.execute(stmt).rowcount or 0

            # Completed history outlives its schedule.
            session.execute(
                update(TaskOccurrenceModel)
                .where(TaskOccurrenceModel.schedule_id == schedule_id)
                .values(schedule_id=None)
            )
            session.delete(model)
            session.commit()
            return removed

    # occurrences

    def get_occurrence(self, occurrence_id: int) -> Optional[TaskOccurrence]:
        with self._session() as session:
            model = session.get(TaskOccurrenceModel, occurrence_id)
            return _to_occurrence(model) if model else None

    def list_occurrences(
        self,
        caregiver_id: str,
        start: date,
        end: date,
        filters: OccurrenceFilters | None = None,
    ) -> list[TaskOccurrence]:
        with self._session() as session:
            stmt = select(TaskOccurrenceModel).where(
                TaskOccurrenceModel.caregiver_id == caregiver_id,
                TaskOccurrenceModel.occurrence_date.between(start, end),
            )
            stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(
                TaskOccurrenceModel.scheduled_at.asc(),
                TaskOccurrenceModel.id.asc(),
            )
            return [_to_occurrence(model) for model in session.scalars(stmt)]

    def list_overdue_occurrences(self, cutoff: datetime) -> list[TaskOccurrence]:
        with self._session() as session:
            stmt = (
                select(TaskOccurrenceModel)
                .where(
                    TaskOccurrenceModel.status == STATUS_PENDING,
                    TaskOccurrenceModel.deadline_at < cutoff,
                )
                .order_by(TaskOccurrenceModel.deadline_at.asc())
            )
            return [_to_occurrence(model) for model in session.scalars(stmt)]

    def insert_occurrence_if_absent(self, occurrence: TaskOccurrence) -> bool:
        with self._session() as session:
            existing_stmt = select(TaskOccurrenceModel.id).where(
                TaskOccurrenceModel.schedule_id == occurrence.schedule_id,
                TaskOccurrenceModel.occurrence_date == occurrence.occurrence_date,
            )
            if session.scalar(existing_stmt) is not None:
                return False

            session.add(
                TaskOccurrenceModel(
                    schedule_id=occurrence.schedule_id,
                    occurrence_date=occurrence.occurrence_date,
                    title=occurrence.title,
                    description=occurrence.description,
                    caregiver_id=occurrence.caregiver_id,
                    patient_id=occurrence.patient_id,
                    proof_requirement=(
                        occurrence.proof_requirement.value if occurrence.proof_requirement else None
                    ),
                    scheduled_at=occurrence.scheduled_at,
                    deadline_at=occurrence.deadline_at,
                    status=occurrence.status.value,
                    completed_at=occurrence.completed_at,
                    **_proof_columns(occurrence.proof),
                    **_audit_columns(occurrence.created_at, occurrence.updated_at),
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                # Only a row for the same (schedule, date) written by another
                # materializer counts as already present.
                if session.scalar(existing_stmt) is None:
                    raise
                return False
            return True

    def update_occurrence_status(
        self,
        occurrence_id: int,
        new_status: OccurrenceStatus,
        completed_at: Optional[datetime],
        proof: Optional[Proof],
        expected_status: OccurrenceStatus | None = None,
        updated_at: Optional[datetime] = None,
    ) -> TaskOccurrence:
        with self._session() as session:
            stmt = (
                update(TaskOccurrenceModel)
                .where(TaskOccurrenceModel.id == occurrence_id)
                .values(
                    status=new_status.value,
                    completed_at=completed_at,
                    updated_at=updated_at or utcnow(),
                    **_proof_columns(proof),
                )
            )
            if expected_status is not None:
                stmt = stmt.where(TaskOccurrenceModel.status == expected_status.value)

            if not session.execute(stmt).rowcount:
                session.rollback()
                model = session.get(TaskOccurrenceModel, occurrence_id)
                if not model:
                    raise NotFoundError(f"occurrence {occurrence_id} not found")
                raise ConcurrentUpdateError(
                    f"occurrence {occurrence_id} is {model.status}, expected {expected_status}"
                )

            session.commit()
            model = session.get(TaskOccurrenceModel, occurrence_id)
            return _to_occurrence(model)

    def delete_pending_occurrences(self, schedule_id: int, from_date: date) -> int:
        with self._session() as session:
            result = session.execute(
                delete(TaskOccurrenceModel).where(
                    TaskOccurrenceModel.schedule_id == schedule_id,
                    TaskOccurrenceModel.status == STATUS_PENDING,
                    TaskOccurrenceModel.occurrence_date >= from_date,
                    # Rows holding proof kept through a revert are refreshed, not dropped.
                    TaskOccurrenceModel.proof_kind.is_(None),
                )
            )
            session.commit()
            return result.rowcount or 0

    def refresh_retained_occurrences(
        self, schedule: TaskSchedule, from_date: date, updated_at: Optional[datetime] = None
    ) -> int:
        with self._session() as session:
            models = session.scalars(
                select(TaskOccurrenceModel).where(
                    TaskOccurrenceModel.schedule_id == schedule.id,
                    TaskOccurrenceModel.status == STATUS_PENDING,
                    TaskOccurrenceModel.occurrence_date >= from_date,
                    TaskOccurrenceModel.proof_kind.is_not(None),
                )
            ).all()
            for model in models:
                model.title = schedule.title
                model.description = schedule.description
                model.caregiver_id = schedule.caregiver_id
                model.patient_id = schedule.patient_id
                model.proof_requirement = (
                    schedule.proof_requirement.value if schedule.proof_requirement else None
                )
                model.scheduled_at = datetime.combine(model.occurrence_date, schedule.time_of_day_start)
                model.deadline_at = datetime.combine(model.occurrence_date, schedule.time_of_day_end)
                model.updated_at = updated_at or utcnow()
            session.commit()
            return len(models)

    # assignments

    def has_active_assignment(self, caregiver_id: str, patient_id: str) -> bool:
        with self._session() as session:
            found = session.scalar(
                select(CaregiverAssignmentModel.id).where(
                    CaregiverAssignmentModel.caregiver_id == caregiver_id,
                    CaregiverAssignmentModel.patient_id == patient_id,
                    CaregiverAssignmentModel.is_active.is_(True),
                )
            )
            return found is not None

    def set_assignment(self, caregiver_id: str, patient_id: str, active: bool = True) -> None:
        with self._session() as session:
            model = session.scalar(
                select(CaregiverAssignmentModel).where(
                    CaregiverAssignmentModel.caregiver_id == caregiver_id,
                    CaregiverAssignmentModel.patient_id == patient_id,
                )
            )
            if model is None:
                model = CaregiverAssignmentModel(caregiver_id=caregiver_id, patient_id=patient_id)
                session.add(model)
            model.is_active = active
            session.commit()
