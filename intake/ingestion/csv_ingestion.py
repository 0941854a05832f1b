from intake.ingestion.attachments import sanitize_filename
from intake.ingestion.fingerprint import content_fingerprint
from intake.ingestion.models import IngestionEnvelope, IngestionResult, NormalizedAttachment
from intake.ingestion.pipeline import DeliveryProcessor
from intake.ingestion.rules import IngestionRulesService
from intake.ingestion.upload_ingestion import MAX_UPLOAD_BYTES
from intake.workflow.exceptions import ValidationError
from intake.workflow.models import UploadSource

CSV_MIME_TYPES = frozenset({"text/csv", "application/csv", "application/vnd.ms-excel"})
CSV_CONTENT_TYPE = "text/csv"


class CsvIngestionService:
    """Bank and card exports dropped as CSV files."""

    def __init__(self, processor: DeliveryProcessor, rules: IngestionRulesService) -> None:
        self._processor = processor
        self._rules = rules

    def ingest(
        self,
        tenant_id: str,
        file_name: str,
        content_type: str | None,
        content: bytes,
        uploaded_by: str | None = None,
    ) -> IngestionResult:
        """Store one CSV export and queue it for extraction.

        Raises:
            ValidationError: if the file is empty, too large, or not a CSV.
        """
        if not content:
            raise ValidationError("No file provided")
        if len(content) > MAX_UPLOAD_BYTES:
            raise ValidationError("File exceeds the 50 MB upload limit")
        mime = (content_type or "").split(";")[0].strip().lower()
        if not (file_name or "").lower().endswith(".csv") and mime not in CSV_MIME_TYPES:
            raise ValidationError("Only CSV files are accepted")

        filename = sanitize_filename(file_name, fallback_prefix="dropzone")
        envelope = IngestionEnvelope(
            tenant_id=tenant_id,
            source_type="csv",
            payload_hash=content_fingerprint(content),
            trigger="csv_upload",
            key_prefix="csv",
            upload_source=UploadSource.CSV,
            attachments=[
                NormalizedAttachment(
                    filename=filename, content_type=CSV_CONTENT_TYPE, content=content
                )
            ],
            payload={"fileName": filename, "byteSize": len(content)},
            metadata={"uploadedBy": uploaded_by},
            job_headers={"x-trigger": "csv_upload"},
        )

        duplicate = self._processor.find_duplicate(envelope)
        if duplicate is not None:
            return duplicate

        routing = self._rules.evaluate(
            tenant_id,
            {
                "sourceType": "csv",
                "source": filename,
                "fileName": filename,
                "fileType": CSV_CONTENT_TYPE,
                "fileSize": len(content),
            },
        )
        routing.apply_to(envelope)
        return self._processor.process(envelope, uploaded_by=uploaded_by)
