from typing import Any

from intake.database.models import StageTransitionRecord
from intake.database.repositories.documents_repository import DocumentsRepository
from intake.logging.logger import Log
from intake.queue.publisher import PipelineJobs
from intake.workflow.exceptions import ValidationError
from intake.workflow.ledger import StageTransitionLedger
from intake.workflow.models import (
    RETRY_STAGE_STATUS,
    DocumentStatus,
    ProcessingStage,
)

# Keys written into extracted_data by the OCR and classification workers.
RAW_TEXT_KEY = "rawText"
CLASSIFICATION_KEY = "classification"


def _raw_text(extracted_data: dict[str, Any] | None) -> str | None:
    value = (extracted_data or {}).get(RAW_TEXT_KEY)
    if isinstance(value, str) and value:
        return value
    return None


def resolve_retry_stage(
    status: DocumentStatus | str,
    extracted_data: dict[str, Any] | None,
) -> ProcessingStage:
    """Decide which pipeline stage a retry should re-enter.

    Raises:
        ValidationError: if the document is not eligible for retry, or is
            extracted but carries no raw text to classify.
    """
    try:
        status = DocumentStatus(status)
    except ValueError as exc:
        raise ValidationError("Document is not eligible for retry") from exc

    if status in (DocumentStatus.UPLOADED, DocumentStatus.PROCESSING):
        return ProcessingStage.OCR
    if status == DocumentStatus.EXTRACTED:
        if _raw_text(extracted_data) is None:
            raise ValidationError("No extracted text available for classification retry")
        return ProcessingStage.CLASSIFICATION
    if status == DocumentStatus.CLASSIFIED:
        return ProcessingStage.LEDGER_POSTING
    if status == DocumentStatus.ERROR:
        if _raw_text(extracted_data) is not None:
            if (extracted_data or {}).get(CLASSIFICATION_KEY):
                return ProcessingStage.LEDGER_POSTING
            return ProcessingStage.CLASSIFICATION
        return ProcessingStage.OCR
    raise ValidationError("Document is not eligible for retry")


class RetryService:
    """Re-queues a document at the stage its current state calls for."""

    def __init__(
        self,
        doc_repo: DocumentsRepository,
        ledger: StageTransitionLedger,
        jobs: PipelineJobs,
    ) -> None:
        self._doc_repo = doc_repo
        self._ledger = ledger
        self._jobs = jobs

    def retry(
        self,
        document_id: str,
        tenant_id: str,
        actor: str | None = None,
        reason: str = "manual_retry",
    ) -> StageTransitionRecord:
        """Publish the stage job and record a ``retry_<stage>`` transition.

        Raises:
            DocumentNotFoundError: if the document does not exist for the tenant.
            ValidationError: if the document cannot be retried.
            JobPublishError: if the job could not be queued; nothing is recorded.
        """
        document = self._doc_repo.find_by_id(document_id, tenant_id)
        stage = resolve_retry_stage(document.status, document.extracted_data)

        if stage == ProcessingStage.OCR:
            if not document.storage_key:
                raise ValidationError("Document storage key missing; re-upload required")
            job_id = self._jobs.publish_ocr_job(
                document_id, document.storage_key, headers={"x-trigger": reason}
            )
        elif stage == ProcessingStage.CLASSIFICATION:
            job_id = self._jobs.publish_classification_job(
                document_id, (document.extracted_data or {})[RAW_TEXT_KEY]
            )
        else:
            job_id = self._jobs.publish_ledger_job(document_id, reason)

        metadata: dict[str, Any] = {
            "reason": reason,
            "previousStatus": document.status,
            "jobId": job_id,
        }
        if actor is not None:
            metadata["actor"] = actor
        transition = self._ledger.record_transition(
            document_id,
            tenant_id,
            RETRY_STAGE_STATUS[stage],
            trigger=f"retry_{stage.value}",
            metadata=metadata,
            update_status=True,
            error_message=None,
        )
        Log.info(f"Document {document_id} re-queued for {stage.value.replace('_', ' ')}")
        return transition
