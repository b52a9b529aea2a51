from __future__ import annotations

import logging
import time
from pathlib import Path

from caretasks.config import PROJECT_ROOT, SETTINGS

logger = logging.getLogger(__name__)

PROOF_PREFIX = "task-proofs"


class LocalBlobStore:
    """Proof blobs on the local filesystem, addressed by relative storage path."""

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root) if root is not None else PROJECT_ROOT / SETTINGS.proof_storage_dir

    def _resolve(self, path: str) -> Path | None:
        candidate = (self._root / path).resolve()
        root = self._root.resolve()
        if candidate != root and root not in candidate.parents:
            return None
        return candidate

    def exists(self, path: str) -> bool:
        if not path:
            return False
        resolved = self._resolve(path)
        return resolved is not None and resolved.is_file()

    def save(self, occurrence_id: int, user_id: str, filename: str, data: bytes) -> str:
        ext = Path(filename).suffix.lstrip(".") or "bin"
        name = f"{occurrence_id}-{user_id}-{int(time.time() * 1000)}.{ext}"
        storage_path = f"{PROOF_PREFIX}/{name}"
        target = self._root / storage_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored proof %s (%d bytes)", storage_path, len(data))
        return storage_path
