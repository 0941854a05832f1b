"""Stage transition ledger: the only writer of document status and stage.

Each transition runs as one unit of work: lock the document row, read the
previous status, write the new status/stage projection and append one
history row, then commit. Concurrent transitions on the same document
serialize on the row lock; transitions on different documents never block
each other.
"""

from typing import Any

from intake.database.connection import get_connection
from intake.database.models import StageTransitionRecord
from intake.database.repositories.documents_repository import DocumentsRepository
from intake.database.repositories.stage_transitions_repository import (
    StageTransitionsRepository,
)
from intake.logging.logger import Log
from intake.workflow.exceptions import DocumentNotFoundError, StaleTransitionError
from intake.workflow.models import DocumentStatus, ProcessingStage, stage_for_status


class StageTransitionLedger:
    """Records status/stage changes together with their audit rows."""

    def __init__(
        self,
        doc_repo: DocumentsRepository,
        transitions_repo: StageTransitionsRepository,
    ) -> None:
        self._doc_repo = doc_repo
        self._transitions_repo = transitions_repo

    def record_transition(
        self,
        document_id: str,
        tenant_id: str,
        to_status: DocumentStatus,
        trigger: str,
        metadata: dict[str, Any] | None = None,
        update_status: bool = True,
        error_message: str | None = None,
        expected_stage: ProcessingStage | None = None,
        expected_job_id: int | None = None,
    ) -> StageTransitionRecord:
        """Apply a transition atomically and return the appended history row.

        With ``update_status=False`` only the stage projection moves, which
        records a milestone without flipping the externally visible status.

        ``expected_stage`` and ``expected_job_id`` are checked against the
        locked row: the document must still sit at that stage, and the most
        recent job queued for it must be that job.

        Raises:
            DocumentNotFoundError: if no document matches; nothing is recorded.
            StaleTransitionError: if a guard no longer holds; nothing is recorded.
        """
        to_stage = stage_for_status(to_status)
        with get_connection() as conn:
            with conn.transaction():
                document = self._doc_repo.lock_for_update(conn, document_id, tenant_id)
                if document is None:
                    raise DocumentNotFoundError(f"Document {document_id} not found")

                if expected_stage is not None and document.processing_stage != expected_stage.value:
                    raise StaleTransitionError(
                        f"Document {document_id} is at {document.processing_stage}, "
                        f"not {expected_stage.value}"
                    )
                if expected_job_id is not None:
                    latest_job_id = self._transitions_repo.latest_job_id(conn, document_id, tenant_id)
                    if latest_job_id is not None and latest_job_id != expected_job_id:
                        raise StaleTransitionError(
                            f"Document {document_id} was re-queued as job {latest_job_id}"
                        )

                previous_status = document.status
                from_stage = stage_for_status(previous_status)

                self._doc_repo.apply_transition(
                    conn,
                    document_id,
                    tenant_id,
                    stage=to_stage.value,
                    status=to_status.value if update_status else None,
                    error_message=error_message,
                )
                transition = self._transitions_repo.insert(
                    conn,
                    document_id=document_id,
                    tenant_id=tenant_id,
                    from_status=previous_status,
                    to_status=to_status.value,
                    from_stage=from_stage.value,
                    to_stage=to_stage.value,
                    trigger=trigger,
                    metadata=metadata or {},
                )

        Log.debug(
            f"Document {document_id}: {previous_status} -> {to_status.value} "
            f"({from_stage.value} -> {to_stage.value}, trigger={trigger})"
        )
        return transition

    def get_history(self, document_id: str, tenant_id: str) -> list[StageTransitionRecord]:
        """Return all transitions for a document, oldest first."""
        return self._transitions_repo.list_for_document(document_id, tenant_id)
