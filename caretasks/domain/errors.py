from __future__ import annotations

from .enums import OccurrenceStatus, ProofKind


class CaretasksError(Exception):
    pass


class InvalidScheduleError(CaretasksError):
    pass


class EmptyRangeError(CaretasksError):
    pass


class IllegalTransitionError(CaretasksError):
    def __init__(self, current: OccurrenceStatus, requested: OccurrenceStatus, reason: str = "") -> None:
        message = f"cannot move occurrence from {current.value} to {requested.value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.current = current
        self.requested = requested


class ProofKindMismatchError(CaretasksError):
    def __init__(self, expected: ProofKind, actual: ProofKind) -> None:
        super().__init__(f"expected {expected.value} proof, got {actual.value}")
        self.expected = expected
        self.actual = actual


class ProofMissingError(CaretasksError):
    pass


class AuthorizationError(CaretasksError):
    pass


class NotFoundError(CaretasksError):
    pass


class RepositoryError(CaretasksError):
    """Storage failure. The only error class callers may retry."""


class ConcurrentUpdateError(RepositoryError):
    pass
