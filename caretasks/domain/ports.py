from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol

from .entities import Proof, TaskOccurrence, TaskSchedule
from .enums import CascadePolicy, OccurrenceStatus
from .filters import OccurrenceFilters


class ScheduleRepository(Protocol):
    """Persistence boundary of the engine.

    Every method may raise ``RepositoryError``. Implementations must make
    ``insert_occurrence_if_absent`` safe under concurrent callers and apply
    ``update_occurrence_status`` as one atomic write.
    """

    def create_schedule(self, schedule: TaskSchedule) -> TaskSchedule: ...

    def update_schedule(self, schedule: TaskSchedule) -> TaskSchedule: ...

    def get_schedule(self, schedule_id: int) -> Optional[TaskSchedule]: ...

    def find_active_schedules(self, as_of: date) -> list[TaskSchedule]: ...

    def delete_schedule(self, schedule_id: int, cascade_policy: CascadePolicy) -> int: ...

    def get_occurrence(self, occurrence_id: int) -> Optional[TaskOccurrence]: ...

    def list_occurrences(
        self,
        caregiver_id: str,
        start: date,
        end: date,
        filters: OccurrenceFilters | None = None,
    ) -> list[TaskOccurrence]: ...

    def list_overdue_occurrences(self, cutoff: datetime) -> list[TaskOccurrence]: ...

    def insert_occurrence_if_absent(self, occurrence: TaskOccurrence) -> bool: ...

    def update_occurrence_status(
        self,
        occurrence_id: int,
        new_status: OccurrenceStatus,
        completed_at: Optional[datetime],
        proof: Optional[Proof],
        expected_status: OccurrenceStatus | None = None,
        updated_at: Optional[datetime] = None,
    ) -> TaskOccurrence: ...

    def delete_pending_occurrences(self, schedule_id: int, from_date: date) -> int:
        """Drop pending occurrences from ``from_date`` on, except those holding proof."""

    def refresh_retained_occurrences(
        self, schedule: TaskSchedule, from_date: date, updated_at: Optional[datetime] = None
    ) -> int:
        """Copy edited schedule fields onto pending occurrences that hold proof."""

    def has_active_assignment(self, caregiver_id: str, patient_id: str) -> bool: ...


class BlobStore(Protocol):
    def exists(self, path: str) -> bool: ...

    def save(self, occurrence_id: int, user_id: str, filename: str, data: bytes) -> str: ...
