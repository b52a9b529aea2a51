from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import OccurrenceStatus


@dataclass(frozen=True)
class OccurrenceFilters:
    status: Optional[OccurrenceStatus] = None
    search: str | None = None
    patient_id: str | None = None
