from __future__ import annotations

from enum import IntEnum, StrEnum


class OccurrenceStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    COMPLETED_LATE = "completed_late"
    MISSED = "missed"

    @property
    def is_completed(self) -> bool:
        return self in (OccurrenceStatus.COMPLETED, OccurrenceStatus.COMPLETED_LATE)


class Frequency(StrEnum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"


class ProofKind(StrEnum):
    PHOTO = "photo"
    AUDIO = "audio"


class Role(StrEnum):
    SUPERVISOR = "supervisor"
    CAREGIVER = "caregiver"


class CascadePolicy(StrEnum):
    KEEP_COMPLETED = "keep_completed"
    DELETE_ALL = "delete_all"


class Weekday(IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def from_sunday_index(cls, value: int) -> "Weekday":
        """Convert a 0=Sunday..6=Saturday day number (mobile client encoding)."""
        if not 0 <= value <= 6:
            raise ValueError(f"weekday index out of range: {value}")
        return cls((value - 1) % 7)
