from dataclasses import dataclass

from intake.ingestion.attachments import sanitize_filename
from intake.ingestion.fingerprint import content_fingerprint
from intake.ingestion.models import IngestionEnvelope, NormalizedAttachment
from intake.ingestion.pipeline import DeliveryProcessor
from intake.logging.logger import Log
from intake.quality.models import QualityAssessmentResult, QualityGateDecision
from intake.quality.scorer import QualityAssessor, evaluate_quality_gate
from intake.workflow.exceptions import ValidationError
from intake.workflow.models import DocumentType, UploadSource

ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "application/pdf", "text/csv"})
MAX_UPLOAD_BYTES = 50 * 1024 * 1024


@dataclass
class UploadResult:
    """Outcome of a direct upload."""

    ingestion_log_id: str | None
    document_id: str | None
    quality: QualityAssessmentResult | None
    gate: QualityGateDecision | None
    duplicate: bool = False
    error: str | None = None


class UploadIngestionService:
    """Direct upload: quality gate first, then the shared delivery pipeline."""

    def __init__(self, processor: DeliveryProcessor, assessor: QualityAssessor) -> None:
        self._processor = processor
        self._assessor = assessor

    def upload(
        self,
        tenant_id: str,
        file_name: str,
        mime_type: str,
        content: bytes,
        declared_type: DocumentType | str | None = None,
        uploaded_by: str | None = None,
        upload_source: UploadSource | str = UploadSource.DASHBOARD,
    ) -> UploadResult:
        """Score, store and queue one uploaded file.

        Raises:
            ValidationError: if the file is empty, too large, of a disallowed
                type, or the upload source is unknown.
        """
        mime = (mime_type or "").lower()
        if not content:
            raise ValidationError("No file provided")
        if len(content) > MAX_UPLOAD_BYTES:
            raise ValidationError("File exceeds the 50 MB upload limit")
        if mime not in ALLOWED_MIME_TYPES:
            raise ValidationError("Invalid file type. Allowed: JPEG, PNG, PDF, CSV")
        try:
            source = UploadSource(upload_source)
        except ValueError as exc:
            raise ValidationError(f"Unknown upload source '{upload_source}'") from exc

        filename = sanitize_filename(file_name, fallback_prefix="upload")
        envelope = IngestionEnvelope(
            tenant_id=tenant_id,
            source_type="upload",
            payload_hash=content_fingerprint(content),
            trigger="upload",
            key_prefix="uploads",
            upload_source=source,
            attachments=[NormalizedAttachment(filename=filename, content_type=mime, content=content)],
            payload={"fileName": filename, "mimeType": mime, "byteSize": len(content)},
            metadata={"uploadedBy": uploaded_by},
            job_headers={"x-trigger": "upload"},
        )

        duplicate = self._processor.find_duplicate(envelope)
        if duplicate is not None:
            existing_ids = duplicate.document_ids
            return UploadResult(
                ingestion_log_id=duplicate.ingestion_log_id,
                document_id=existing_ids[0] if existing_ids else None,
                quality=None,
                gate=None,
                duplicate=True,
            )

        quality = self._assessor.assess(content, mime, filename, declared_type)
        gate = evaluate_quality_gate(quality)
        envelope.metadata["qualityGate"] = gate.status
        Log.info(
            f"Quality gate for {filename} (tenant {tenant_id}): score={quality.score} "
            f"status={gate.status} issues={[issue.id for issue in quality.issues]}"
        )

        result = self._processor.process(envelope, quality=quality, uploaded_by=uploaded_by)
        outcome = result.attachments[0] if result.attachments else None
        return UploadResult(
            ingestion_log_id=result.ingestion_log_id,
            document_id=outcome.document_id if outcome else None,
            quality=quality,
            gate=gate,
            duplicate=result.status == "duplicate",
            error=outcome.error if outcome else None,
        )
