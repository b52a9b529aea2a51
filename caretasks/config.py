from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    timezone: str = "UTC"
    expansion_horizon_days: int = 14
    missed_grace_minutes: int = 0
    proof_storage_dir: str = "proofs"


load_env()

DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

SETTINGS = Settings(
    database_url=DATABASE_URL,
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs"),
    timezone=os.getenv("CARE_TIMEZONE", "UTC").strip() or "UTC",
    expansion_horizon_days=int(os.getenv("EXPANSION_HORIZON_DAYS", "14")),
    missed_grace_minutes=int(os.getenv("MISSED_GRACE_MINUTES", "0")),
    proof_storage_dir=os.getenv("PROOF_STORAGE_DIR", "proofs").strip() or "proofs",
)
