from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CaregiverAssignmentModel(Base):
    __tablename__ = "caregiver_assignments"
    __table_args__ = (UniqueConstraint("caregiver_id", "patient_id", name="uq_assignment_pair"),)

    id = Column(Integer, primary_key=True)
    caregiver_id = Column(String(64), nullable=False, index=True)
    patient_id = Column(String(64), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class TaskScheduleModel(Base):
    __tablename__ = "task_schedules"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    caregiver_id = Column(String(64), nullable=False, index=True)
    patient_id = Column(String(64), nullable=False)
    window_start = Column(Date, nullable=False)
    window_end = Column(Date, nullable=False)
    time_of_day_start = Column(Time, nullable=False)
    time_of_day_end = Column(Time, nullable=False)
    frequency = Column(String(10), nullable=False, default="once")
    weekdays = Column(String(20), nullable=False, default="")
    proof_kind = Column(String(10), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class TaskOccurrenceModel(Base):
    __tablename__ = "task_occurrences"
    __table_args__ = (
        UniqueConstraint("schedule_id", "occurrence_date", name="uq_occurrence_schedule_date"),
        Index("ix_task_occurrences_caregiver_scheduled", "caregiver_id", "scheduled_at"),
    )

    id = Column(Integer, primary_key=True)
    schedule_id = Column(
        Integer, ForeignKey("task_schedules.id", ondelete="SET NULL"), nullable=True
    )
    occurrence_date = Column(Date, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    caregiver_id = Column(String(64), nullable=False)
    patient_id = Column(String(64), nullable=False)
    proof_requirement = Column(String(10), nullable=True)
    scheduled_at = Column(DateTime, nullable=False)
    deadline_at = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    completed_at = Column(DateTime, nullable=True)
    proof_kind = Column(String(10), nullable=True)
    proof_storage_path = Column(String(500), nullable=True)
    proof_uploaded_by = Column(String(64), nullable=True)
    proof_uploaded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
