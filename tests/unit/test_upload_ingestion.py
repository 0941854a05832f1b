from unittest.mock import MagicMock

import pytest

from intake.ingestion.fingerprint import content_fingerprint
from intake.ingestion.models import AttachmentOutcome, IngestionResult
from intake.ingestion.upload_ingestion import MAX_UPLOAD_BYTES, UploadIngestionService
from intake.quality.models import QualityAssessmentResult, QualityIssue
from intake.workflow.exceptions import ValidationError
from intake.workflow.models import DocumentType

PDF = b"%PDF-1.4" + b"0" * 1024


def _make_service(
    quality: QualityAssessmentResult | None = None,
) -> tuple[UploadIngestionService, MagicMock, MagicMock]:
    processor = MagicMock()
    processor.find_duplicate.return_value = None
    processor.process.return_value = IngestionResult(
        status="processed",
        ingestion_log_id="log-1",
        attachments=[AttachmentOutcome("invoice.pdf", "queued", document_id="doc-1")],
    )
    assessor = MagicMock()
    assessor.assess.return_value = quality or QualityAssessmentResult(
        score=100, suggested_type=DocumentType.INVOICE
    )
    return UploadIngestionService(processor, assessor), processor, assessor


class TestUploadValidation:
    def test_empty_file_is_rejected(self) -> None:
        service, processor, _ = _make_service()
        with pytest.raises(ValidationError, match="No file provided"):
            service.upload("tenant-1", "invoice.pdf", "application/pdf", b"")
        processor.process.assert_not_called()

    def test_oversized_file_is_rejected(self) -> None:
        service, _, _ = _make_service()
        with pytest.raises(ValidationError, match="50 MB"):
            service.upload("tenant-1", "big.pdf", "application/pdf", b"0" * (MAX_UPLOAD_BYTES + 1))

    def test_disallowed_type_is_rejected(self) -> None:
        service, _, _ = _make_service()
        with pytest.raises(ValidationError, match="Invalid file type"):
            service.upload("tenant-1", "notes.docx", "application/msword", b"docx")

    def test_unknown_source_is_rejected(self) -> None:
        service, _, _ = _make_service()
        with pytest.raises(ValidationError, match="Unknown upload source"):
            service.upload("tenant-1", "invoice.pdf", "application/pdf", PDF, upload_source="fax")


class TestUpload:
    def test_scores_and_processes_upload(self) -> None:
        service, processor, assessor = _make_service()

        result = service.upload(
            "tenant-1",
            "invoice.pdf",
            "application/pdf",
            PDF,
            declared_type="invoice",
            uploaded_by="user-7",
            upload_source="mobile",
        )

        assessor.assess.assert_called_once_with(PDF, "application/pdf", "invoice.pdf", "invoice")
        envelope = processor.process.call_args.args[0]
        assert envelope.source_type == "upload"
        assert envelope.payload_hash == content_fingerprint(PDF)
        assert envelope.upload_source.value == "mobile"
        assert envelope.metadata["qualityGate"] == "passed"
        assert processor.process.call_args.kwargs["uploaded_by"] == "user-7"
        assert result.document_id == "doc-1"
        assert result.ingestion_log_id == "log-1"
        assert result.gate is not None and result.gate.status == "passed"
        assert result.duplicate is False

    def test_low_quality_upload_is_still_ingested(self) -> None:
        quality = QualityAssessmentResult(
            score=65,
            suggested_type=DocumentType.OTHER,
            issues=[QualityIssue("pdf_unreadable", "critical", "Unreadable", "Re-export")],
        )
        service, processor, _ = _make_service(quality)

        result = service.upload("tenant-1", "scan.pdf", "application/pdf", PDF)

        processor.process.assert_called_once()
        assert result.gate is not None and result.gate.status == "needs_review"
        assert result.document_id == "doc-1"

    def test_duplicate_upload_returns_existing_document(self) -> None:
        service, processor, assessor = _make_service()
        processor.find_duplicate.return_value = IngestionResult(
            status="duplicate", ingestion_log_id="log-0", existing_document_ids=["doc-0"]
        )

        result = service.upload("tenant-1", "invoice.pdf", "application/pdf", PDF)

        assert result.duplicate is True
        assert result.document_id == "doc-0"
        assessor.assess.assert_not_called()
        processor.process.assert_not_called()

    def test_filename_is_sanitized(self) -> None:
        service, processor, _ = _make_service()

        service.upload("tenant-1", "../my receipt.png", "IMAGE/PNG", PDF)

        attachment = processor.process.call_args.args[0].attachments[0]
        assert attachment.filename == "my_receipt.png"
        assert attachment.content_type == "image/png"
