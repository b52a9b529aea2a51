from __future__ import annotations

import logging
from datetime import datetime

from .entities import Proof, ProofSubmission, TaskOccurrence
from .errors import ProofKindMismatchError, ProofMissingError
from .ports import BlobStore

logger = logging.getLogger(__name__)


class ProofGate:
    """Decides whether an occurrence may be completed with the given proof.

    The gate never uploads anything; it only checks that the blob store can
    resolve the reference produced by an earlier upload.
    """

    def __init__(self, blob_store: BlobStore) -> None:
        self._blob_store = blob_store

    def admit(
        self,
        occurrence: TaskOccurrence,
        submission: ProofSubmission | None,
        uploaded_by: str,
        uploaded_at: datetime,
    ) -> Proof | None:
        required = occurrence.proof_requirement
        if required is None:
            if submission is None:
                return None
            return Proof(submission.kind, submission.storage_path, uploaded_by, uploaded_at)

        if submission is None:
            raise ProofMissingError(f"occurrence {occurrence.id} requires {required.value} proof")
        if submission.kind != required:
            raise ProofKindMismatchError(required, submission.kind)

        path = (submission.storage_path or "").strip()
        if not path:
            raise ProofMissingError("proof storage path is empty")
        if not self._blob_store.exists(path):
            logger.warning("Proof %s for occurrence %s not found in storage", path, occurrence.id)
            raise ProofMissingError(f"proof {path} is not in storage")

        return Proof(
            kind=submission.kind,
            storage_path=path,
            uploaded_by=uploaded_by,
            uploaded_at=uploaded_at,
        )
