from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from .enums import Frequency, OccurrenceStatus, ProofKind, Role, Weekday


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role


@dataclass(frozen=True)
class TaskSchedule:
    id: int | None
    title: str
    description: str
    caregiver_id: str
    patient_id: str
    window_start: date
    window_end: date
    time_of_day_start: time
    time_of_day_end: time
    frequency: Frequency
    weekdays: frozenset[Weekday] = frozenset()
    proof_requirement: Optional[ProofKind] = None
    created_by: str | None = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProofSubmission:
    kind: ProofKind
    storage_path: str


@dataclass(frozen=True)
class Proof:
    kind: ProofKind
    storage_path: str
    uploaded_by: str
    uploaded_at: datetime


@dataclass(frozen=True)
class TaskOccurrence:
    id: int | None
    schedule_id: int | None
    occurrence_date: date
    title: str
    description: str
    caregiver_id: str
    patient_id: str
    proof_requirement: Optional[ProofKind]
    scheduled_at: datetime
    deadline_at: datetime
    status: OccurrenceStatus = OccurrenceStatus.PENDING
    completed_at: Optional[datetime] = None
    proof: Optional[Proof] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ExpansionResult:
    schedule_id: int | None
    dates: list[date] = field(default_factory=list)
    created: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class DaySummary:
    day: date
    total: int
    pending: int
    completed: int
    completed_late: int
    missed: int
