"""Shared delivery processing used by every ingestion channel.

A delivery first claims its fingerprint in ingestion_log, then each
attachment is stored, recorded as a document, and queued for OCR. One
failing attachment never aborts its siblings. Failures outside the
per-attachment steps release the claim so the sender's redelivery is
processed again, unless a document was already created; then the claim is
completed with those documents so a redelivery cannot duplicate them.
"""

import uuid
from dataclasses import asdict
from typing import Any

import psycopg

from intake.config.settings import Settings
from intake.database.models import DocumentRecord
from intake.database.repositories.documents_repository import DocumentsRepository
from intake.database.repositories.ingestion_log_repository import IngestionLogRepository
from intake.ingestion.fingerprint import content_fingerprint
from intake.ingestion.models import (
    AttachmentOutcome,
    IngestionEnvelope,
    IngestionResult,
    NormalizedAttachment,
)
from intake.logging.logger import Log
from intake.quality.models import QualityAssessmentResult
from intake.quality.scorer import infer_document_type
from intake.queue.publisher import PipelineJobs
from intake.storage.base import BaseBlobStore
from intake.workflow.exceptions import (
    BlobStoreError,
    DocumentNotFoundError,
    DuplicateDeliveryError,
    IntakeError,
    InvariantViolation,
    JobPublishError,
    TransientInfrastructureError,
)
from intake.workflow.ledger import StageTransitionLedger
from intake.workflow.models import DocumentStatus, ProcessingStage

OCR_ENQUEUE_FAILED_MESSAGE = "Failed to enqueue OCR job"
INGESTION_FAILED_MESSAGE = "Failed to record document ingestion"


class AttachmentIngestor:
    """Stores one attachment, records it as a document and queues OCR."""

    def __init__(
        self,
        doc_repo: DocumentsRepository,
        ledger: StageTransitionLedger,
        blob_store: BaseBlobStore,
        jobs: PipelineJobs,
        settings: Settings,
    ) -> None:
        self._doc_repo = doc_repo
        self._ledger = ledger
        self._blob_store = blob_store
        self._jobs = jobs
        self._settings = settings

    def ingest(
        self,
        envelope: IngestionEnvelope,
        attachment: NormalizedAttachment,
        ingestion_log_id: str,
        quality: QualityAssessmentResult | None = None,
        uploaded_by: str | None = None,
    ) -> AttachmentOutcome:
        """Run one attachment through store -> create -> UPLOADED -> publish -> PROCESSING.

        Raises:
            InvariantViolation: if the document just created cannot be found.
        """
        document_id = str(uuid.uuid4())
        storage_key = (
            f"{envelope.key_prefix}/{envelope.tenant_id}/{document_id}/{attachment.filename}"
        )

        try:
            self._blob_store.put(
                storage_key,
                attachment.content,
                attachment.content_type,
                timeout=self._settings.blob_upload_timeout_seconds,
            )
        except BlobStoreError as exc:
            Log.error(
                f"Failed to store attachment {attachment.filename} for tenant "
                f"{envelope.tenant_id}: {exc}"
            )
            return AttachmentOutcome(attachment.filename, "error", error=str(exc))

        document_type = (
            quality.suggested_type if quality is not None else infer_document_type(attachment.filename)
        )
        record = DocumentRecord(
            id=document_id,
            tenant_id=envelope.tenant_id,
            uploaded_by=uploaded_by,
            file_name=attachment.filename,
            mime_type=attachment.content_type,
            byte_size=len(attachment.content),
            file_hash_sha256=content_fingerprint(attachment.content),
            storage_key=storage_key,
            document_type=document_type.value,
            status=DocumentStatus.UPLOADED.value,
            processing_stage=ProcessingStage.DOCUMENT.value,
            upload_source=envelope.upload_source.value,
        )
        if quality is not None:
            record.quality_score = quality.score
            record.quality_issues = [asdict(issue) for issue in quality.issues]
            record.quality_checklist = [asdict(item) for item in quality.checklist]

        try:
            self._doc_repo.create(record)
        except psycopg.Error as exc:
            Log.error(f"Failed to create document for {attachment.filename}: {exc}")
            return AttachmentOutcome(attachment.filename, "error", error=str(exc))

        metadata: dict[str, Any] = {
            "ingestionLogId": ingestion_log_id,
            "sourceType": envelope.source_type,
            "filename": attachment.filename,
        }
        if envelope.connector_provider:
            metadata["provider"] = envelope.connector_provider

        published = False
        try:
            self._ledger.record_transition(
                document_id,
                envelope.tenant_id,
                DocumentStatus.UPLOADED,
                trigger=envelope.trigger,
                metadata=metadata,
                update_status=False,
            )
            try:
                job_id = self._jobs.publish_ocr_job(
                    document_id,
                    storage_key,
                    headers={**envelope.job_headers, "x-ingestion-log-id": ingestion_log_id},
                )
            except JobPublishError as exc:
                Log.error(f"Failed to enqueue OCR job for document {document_id}: {exc}")
                self._ledger.record_transition(
                    document_id,
                    envelope.tenant_id,
                    DocumentStatus.ERROR,
                    trigger="ocr_enqueue_failed",
                    metadata=metadata,
                    error_message=OCR_ENQUEUE_FAILED_MESSAGE,
                )
                return AttachmentOutcome(
                    attachment.filename, "error", document_id=document_id, error=str(exc)
                )

            published = True
            self._ledger.record_transition(
                document_id,
                envelope.tenant_id,
                DocumentStatus.PROCESSING,
                trigger="ocr_enqueued",
                metadata={**metadata, "jobId": job_id},
            )
        except DocumentNotFoundError as exc:
            Log.error(f"Document {document_id} vanished during ingestion: {exc}")
            raise InvariantViolation(
                f"Document {document_id} disappeared while being ingested"
            ) from exc
        except (psycopg.Error, TransientInfrastructureError) as exc:
            Log.error(f"Failed to record ingestion of document {document_id}: {exc}")
            if not published:
                self._record_failure(document_id, envelope.tenant_id, metadata)
            return AttachmentOutcome(
                attachment.filename, "error", document_id=document_id, error=str(exc)
            )

        Log.info(
            f"Document {document_id} ({attachment.filename}) queued for OCR "
            f"from {envelope.source_type} delivery {ingestion_log_id}"
        )
        return AttachmentOutcome(attachment.filename, "queued", document_id=document_id)

    def _record_failure(
        self,
        document_id: str,
        tenant_id: str,
        metadata: dict[str, Any],
    ) -> None:
        # Best effort: the row may stay at uploaded when the database is still unavailable.
        try:
            self._ledger.record_transition(
                document_id,
                tenant_id,
                DocumentStatus.ERROR,
                trigger="ingestion_failed",
                metadata=metadata,
                error_message=INGESTION_FAILED_MESSAGE,
            )
        except (psycopg.Error, IntakeError) as exc:
            Log.error(f"Could not move document {document_id} to error: {exc}")


class DeliveryProcessor:
    """Claims a delivery's fingerprint and ingests its attachments."""

    def __init__(
        self,
        log_repo: IngestionLogRepository,
        attachment_ingestor: AttachmentIngestor,
    ) -> None:
        self._log_repo = log_repo
        self._attachment_ingestor = attachment_ingestor

    def find_duplicate(self, envelope: IngestionEnvelope) -> IngestionResult | None:
        """Return a duplicate result when the fingerprint was already processed."""
        existing = self._log_repo.find_by_fingerprint(
            envelope.tenant_id, envelope.source_type, envelope.payload_hash
        )
        if existing is None:
            return None
        Log.warning(
            f"Duplicate {envelope.source_type} delivery for tenant {envelope.tenant_id} "
            f"(hash {envelope.payload_hash[:12]}, log {existing.id})"
        )
        return IngestionResult(
            status="duplicate",
            ingestion_log_id=existing.id,
            existing_document_ids=existing.document_ids,
        )

    def process(
        self,
        envelope: IngestionEnvelope,
        quality: QualityAssessmentResult | None = None,
        uploaded_by: str | None = None,
    ) -> IngestionResult:
        try:
            log_id = self._log_repo.claim(
                tenant_id=envelope.tenant_id,
                source_type=envelope.source_type,
                payload_hash=envelope.payload_hash,
                connector_provider=envelope.connector_provider,
                payload=envelope.payload,
                metadata=envelope.metadata,
            )
        except DuplicateDeliveryError as exc:
            Log.warning(
                f"Concurrent duplicate {envelope.source_type} delivery for tenant "
                f"{envelope.tenant_id}, already claimed by {exc.ingestion_log_id}"
            )
            return IngestionResult(status="duplicate", ingestion_log_id=exc.ingestion_log_id)

        outcomes: list[AttachmentOutcome] = list(envelope.rejected)
        try:
            for attachment in envelope.attachments:
                outcomes.append(
                    self._attachment_ingestor.ingest(
                        envelope,
                        attachment,
                        log_id,
                        quality=quality,
                        uploaded_by=uploaded_by,
                    )
                )
            result = IngestionResult(status="processed", ingestion_log_id=log_id, attachments=outcomes)
            self._log_repo.complete(
                log_id,
                result.document_ids,
                {
                    "attachmentCount": len(outcomes),
                    "failedCount": sum(1 for o in outcomes if o.status == "error"),
                },
            )
        except Exception:
            produced = [o.document_id for o in outcomes if o.document_id is not None]
            if not produced:
                Log.exception(
                    "Delivery aborted; releasing its fingerprint",
                    log=log_id,
                    tenant=envelope.tenant_id,
                )
                self._log_repo.release(log_id)
                raise
            Log.exception(
                "Delivery aborted after creating documents; keeping its fingerprint",
                log=log_id,
                tenant=envelope.tenant_id,
                documents=len(produced),
            )
            self._log_repo.complete(
                log_id,
                produced,
                {
                    "attachmentCount": len(envelope.attachments) + len(envelope.rejected),
                    "failedCount": sum(1 for o in outcomes if o.status == "error"),
                    "aborted": True,
                },
            )
            raise

        Log.info(
            f"{envelope.source_type.capitalize()} delivery {log_id} processed for tenant "
            f"{envelope.tenant_id}: {len(result.document_ids)} document(s)"
        )
        return result
