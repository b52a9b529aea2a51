from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta

from caretasks.config import SETTINGS
from caretasks.domain.clock import SystemClock
from caretasks.domain.proof_gate import ProofGate
from caretasks.infra.db import init_db
from caretasks.infra.logging import setup_logging
from caretasks.infra.repository import SqlScheduleRepository
from caretasks.infra.storage import LocalBlobStore
from caretasks.services.occurrence_service import OccurrenceService
from caretasks.services.schedule_service import ScheduleService

logger = logging.getLogger("caretasks")


def build_services() -> tuple[ScheduleService, OccurrenceService]:
    repo = SqlScheduleRepository()
    clock = SystemClock(SETTINGS.timezone)
    schedules = ScheduleService(repo, clock, horizon_days=SETTINGS.expansion_horizon_days)
    occurrences = OccurrenceService(
        repo,
        ProofGate(LocalBlobStore()),
        clock,
        missed_grace=timedelta(minutes=SETTINGS.missed_grace_minutes),
    )
    return schedules, occurrences


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="caretasks",
        description="Materialize upcoming task occurrences and mark overdue ones missed.",
    )
    parser.add_argument("--horizon-days", type=int, default=None)
    parser.add_argument("--skip-sweep", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logging()
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.error("Database unavailable: %s", exc)
        return 1

    schedules, occurrences = build_services()
    results = schedules.materialize_active(horizon_days=args.horizon_days)
    created = sum(result.created for result in results)
    missed = 0 if args.skip_sweep else occurrences.sweep_missed()
    logger.info("Maintenance pass done: %d occurrences created, %d marked missed", created, missed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
