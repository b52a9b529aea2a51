from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta

from caretasks.domain import lifecycle
from caretasks.domain.clock import Clock
from caretasks.domain.entities import Actor, DaySummary, ProofSubmission, TaskOccurrence
from caretasks.domain.enums import OccurrenceStatus, Role
from caretasks.domain.errors import AuthorizationError, ConcurrentUpdateError, NotFoundError
from caretasks.domain.filters import OccurrenceFilters
from caretasks.domain.ports import ScheduleRepository
from caretasks.domain.proof_gate import ProofGate

logger = logging.getLogger(__name__)


class OccurrenceService:
    def __init__(
        self,
        repo: ScheduleRepository,
        proof_gate: ProofGate,
        clock: Clock,
        missed_grace: timedelta = timedelta(0),
    ) -> None:
        self._repo = repo
        self._gate = proof_gate
        self._clock = clock
        self._missed_grace = missed_grace

    def get_occurrence(self, occurrence_id: int) -> TaskOccurrence:
        occurrence = self._repo.get_occurrence(occurrence_id)
        if occurrence is None:
            raise NotFoundError(f"occurrence {occurrence_id} not found")
        return occurrence

    def list_for_day(
        self,
        actor: Actor,
        caregiver_id: str,
        day: date | None = None,
        filters: OccurrenceFilters | None = None,
    ) -> list[TaskOccurrence]:
        day = day or self._clock.today()
        return self.list_range(actor, caregiver_id, day, day, filters)

    def list_range(
        self,
        actor: Actor,
        caregiver_id: str,
        start: date,
        end: date,
        filters: OccurrenceFilters | None = None,
    ) -> list[TaskOccurrence]:
        _require_reader(actor, caregiver_id)
        return self._repo.list_occurrences(caregiver_id, start, end, filters)

    def day_summary(self, actor: Actor, caregiver_id: str, day: date | None = None) -> DaySummary:
        occurrences = self.list_for_day(actor, caregiver_id, day)
        counts = Counter(occurrence.status for occurrence in occurrences)
        return DaySummary(
            day=day or self._clock.today(),
            total=len(occurrences),
            pending=counts[OccurrenceStatus.PENDING],
            completed=counts[OccurrenceStatus.COMPLETED],
            completed_late=counts[OccurrenceStatus.COMPLETED_LATE],
            missed=counts[OccurrenceStatus.MISSED],
        )

    def complete(
        self,
        actor: Actor,
        occurrence_id: int,
        submission: ProofSubmission | None = None,
    ) -> TaskOccurrence:
        occurrence = self.get_occurrence(occurrence_id)
        if actor.role != Role.CAREGIVER or actor.user_id != occurrence.caregiver_id:
            raise AuthorizationError(f"{actor.user_id} cannot complete occurrence {occurrence_id}")

        now = self._clock.now()
        lifecycle.check_transition(occurrence.status, lifecycle.completion_status(occurrence, now))

        uploaded_by, uploaded_at = actor.user_id, now
        if submission is None and occurrence.proof is not None and occurrence.proof_requirement:
            # A proof kept through a revert still counts.
            retained = occurrence.proof
            submission = ProofSubmission(retained.kind, retained.storage_path)
            uploaded_by, uploaded_at = retained.uploaded_by, retained.uploaded_at
        proof = self._gate.admit(occurrence, submission, uploaded_by, uploaded_at)

        completed = lifecycle.complete(occurrence, now, proof)
        saved = self._repo.update_occurrence_status(
            occurrence_id,
            completed.status,
            completed.completed_at,
            completed.proof,
            expected_status=OccurrenceStatus.PENDING,
            updated_at=completed.updated_at,
        )
        logger.info("Occurrence %s %s by %s at %s", occurrence_id, saved.status.value, actor.user_id, now)
        return saved

    def revert(self, actor: Actor, occurrence_id: int) -> TaskOccurrence:
        occurrence = self.get_occurrence(occurrence_id)
        is_owner = actor.role == Role.CAREGIVER and actor.user_id == occurrence.caregiver_id
        if actor.role != Role.SUPERVISOR and not is_owner:
            raise AuthorizationError(f"{actor.user_id} cannot revert occurrence {occurrence_id}")

        reverted = lifecycle.revert(occurrence, self._clock.now())
        saved = self._repo.update_occurrence_status(
            occurrence_id,
            reverted.status,
            reverted.completed_at,
            reverted.proof,
            expected_status=occurrence.status,
            updated_at=reverted.updated_at,
        )
        logger.info(
            "Occurrence %s reverted from %s by %s %s",
            occurrence_id,
            occurrence.status.value,
            actor.role.value,
            actor.user_id,
        )
        return saved

    def sweep_missed(self, now: datetime | None = None) -> int:
        """Mark every pending occurrence past its deadline (plus grace) as missed."""
        now = now or self._clock.now()
        marked = 0
        for occurrence in self._repo.list_overdue_occurrences(now - self._missed_grace):
            if not lifecycle.is_overdue(occurrence, now, self._missed_grace):
                continue
            missed = lifecycle.mark_missed(occurrence, now)
            try:
                self._repo.update_occurrence_status(
                    occurrence.id,
                    missed.status,
                    None,
                    missed.proof,
                    expected_status=OccurrenceStatus.PENDING,
                    updated_at=missed.updated_at,
                )
            except ConcurrentUpdateError:
                logger.info("Occurrence %s changed during sweep, left as is", occurrence.id)
                continue
            marked += 1
        if marked:
            logger.info("Marked %d occurrences missed as of %s", marked, now)
        return marked


def _require_reader(actor: Actor, caregiver_id: str) -> None:
    if actor.role == Role.SUPERVISOR:
        return
    if actor.role == Role.CAREGIVER and actor.user_id == caregiver_id:
        return
    raise AuthorizationError(f"{actor.user_id} cannot read occurrences of {caregiver_id}")
