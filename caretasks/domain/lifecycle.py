"""Occurrence status transitions.

Every function returns a new ``TaskOccurrence``; the input is left untouched,
so a rejected transition never changes state.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

from .entities import Proof, TaskOccurrence
from .enums import OccurrenceStatus
from .errors import IllegalTransitionError

PENDING = OccurrenceStatus.PENDING
COMPLETED = OccurrenceStatus.COMPLETED
COMPLETED_LATE = OccurrenceStatus.COMPLETED_LATE
MISSED = OccurrenceStatus.MISSED

ALLOWED_TRANSITIONS: dict[OccurrenceStatus, frozenset[OccurrenceStatus]] = {
    PENDING: frozenset({COMPLETED, COMPLETED_LATE, MISSED}),
    COMPLETED: frozenset({PENDING}),
    COMPLETED_LATE: frozenset({PENDING}),
    MISSED: frozenset(),
}


def check_transition(current: OccurrenceStatus, requested: OccurrenceStatus) -> None:
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise IllegalTransitionError(current, requested)


def completion_status(occurrence: TaskOccurrence, at: datetime) -> OccurrenceStatus:
    # Completing exactly at the deadline is on time.
    return COMPLETED if at <= occurrence.deadline_at else COMPLETED_LATE


def complete(occurrence: TaskOccurrence, at: datetime, proof: Proof | None = None) -> TaskOccurrence:
    target = completion_status(occurrence, at)
    check_transition(occurrence.status, target)
    return replace(
        occurrence,
        status=target,
        completed_at=at,
        proof=proof if proof is not None else occurrence.proof,
        updated_at=at,
    )


def is_overdue(occurrence: TaskOccurrence, now: datetime, grace: timedelta = timedelta(0)) -> bool:
    return occurrence.status == PENDING and now > occurrence.deadline_at + grace


def mark_missed(occurrence: TaskOccurrence, now: datetime) -> TaskOccurrence:
    check_transition(occurrence.status, MISSED)
    if now <= occurrence.deadline_at:
        raise IllegalTransitionError(PENDING, MISSED, "deadline has not passed")
    return replace(occurrence, status=MISSED, completed_at=None, updated_at=now)


def revert(occurrence: TaskOccurrence, at: datetime | None = None) -> TaskOccurrence:
    """Send a completed occurrence back to pending, keeping its proof."""
    check_transition(occurrence.status, PENDING)
    return replace(
        occurrence,
        status=PENDING,
        completed_at=None,
        updated_at=at or occurrence.updated_at,
    )
