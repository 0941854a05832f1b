from unittest.mock import MagicMock, patch

import pytest

from intake.database.models import DocumentRecord, StageTransitionRecord
from intake.workflow.exceptions import DocumentNotFoundError, StaleTransitionError
from intake.workflow.ledger import StageTransitionLedger
from intake.workflow.models import DocumentStatus, ProcessingStage


def _make_document(status: str = "uploaded") -> DocumentRecord:
    return DocumentRecord(
        id="doc-1",
        tenant_id="tenant-1",
        file_name="invoice.pdf",
        mime_type="application/pdf",
        byte_size=2048,
        status=status,
        processing_stage="document",
        upload_source="email",
    )


def _mock_connection(mock_get_conn: MagicMock) -> MagicMock:
    mock_conn = MagicMock()
    mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
    mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
    return mock_conn


def _make_ledger(document: DocumentRecord | None) -> tuple[StageTransitionLedger, MagicMock, MagicMock]:
    doc_repo = MagicMock()
    doc_repo.lock_for_update.return_value = document
    transitions_repo = MagicMock()
    transitions_repo.insert.side_effect = lambda conn, **kwargs: StageTransitionRecord(id=1, **kwargs)
    return StageTransitionLedger(doc_repo, transitions_repo), doc_repo, transitions_repo


class TestRecordTransition:
    @patch("intake.workflow.ledger.get_connection")
    def test_updates_status_and_appends_history(self, mock_get_conn: MagicMock) -> None:
        conn = _mock_connection(mock_get_conn)
        ledger, doc_repo, transitions_repo = _make_ledger(_make_document("uploaded"))

        transition = ledger.record_transition(
            "doc-1", "tenant-1", DocumentStatus.PROCESSING, trigger="ocr_enqueued"
        )

        conn.transaction.assert_called_once()
        doc_repo.apply_transition.assert_called_once_with(
            conn,
            "doc-1",
            "tenant-1",
            stage="ocr",
            status="processing",
            error_message=None,
        )
        transitions_repo.insert.assert_called_once_with(
            conn,
            document_id="doc-1",
            tenant_id="tenant-1",
            from_status="uploaded",
            to_status="processing",
            from_stage="document",
            to_stage="ocr",
            trigger="ocr_enqueued",
            metadata={},
        )
        assert transition.to_status == "processing"

    @patch("intake.workflow.ledger.get_connection")
    def test_stage_only_transition_keeps_status(self, mock_get_conn: MagicMock) -> None:
        conn = _mock_connection(mock_get_conn)
        ledger, doc_repo, transitions_repo = _make_ledger(_make_document("uploaded"))

        ledger.record_transition(
            "doc-1",
            "tenant-1",
            DocumentStatus.UPLOADED,
            trigger="email",
            metadata={"ingestionLogId": "log-1"},
            update_status=False,
        )

        assert doc_repo.apply_transition.call_args.kwargs["status"] is None
        insert_kwargs = transitions_repo.insert.call_args.kwargs
        assert insert_kwargs["from_status"] == "uploaded"
        assert insert_kwargs["to_status"] == "uploaded"
        assert insert_kwargs["metadata"] == {"ingestionLogId": "log-1"}

    @patch("intake.workflow.ledger.get_connection")
    def test_error_transition_carries_message(self, mock_get_conn: MagicMock) -> None:
        _mock_connection(mock_get_conn)
        ledger, doc_repo, transitions_repo = _make_ledger(_make_document("processing"))

        ledger.record_transition(
            "doc-1",
            "tenant-1",
            DocumentStatus.ERROR,
            trigger="ocr_enqueue_failed",
            error_message="Failed to enqueue OCR job",
        )

        assert doc_repo.apply_transition.call_args.kwargs == {
            "stage": "error",
            "status": "error",
            "error_message": "Failed to enqueue OCR job",
        }
        assert transitions_repo.insert.call_args.kwargs["from_stage"] == "ocr"

    @patch("intake.workflow.ledger.get_connection")
    def test_missing_document_records_nothing(self, mock_get_conn: MagicMock) -> None:
        _mock_connection(mock_get_conn)
        ledger, doc_repo, transitions_repo = _make_ledger(None)

        with pytest.raises(DocumentNotFoundError, match="Document doc-1 not found"):
            ledger.record_transition(
                "doc-1", "tenant-1", DocumentStatus.PROCESSING, trigger="ocr_enqueued"
            )

        doc_repo.apply_transition.assert_not_called()
        transitions_repo.insert.assert_not_called()

    @patch("intake.workflow.ledger.get_connection")
    def test_unknown_previous_status_projects_to_document(self, mock_get_conn: MagicMock) -> None:
        _mock_connection(mock_get_conn)
        ledger, _doc_repo, transitions_repo = _make_ledger(_make_document("archived"))

        ledger.record_transition("doc-1", "tenant-1", DocumentStatus.PROCESSING, trigger="x")

        assert transitions_repo.insert.call_args.kwargs["from_stage"] == "document"


class TestGetHistory:
    def test_delegates_to_repository(self) -> None:
        ledger, _doc_repo, transitions_repo = _make_ledger(None)
        transitions_repo.list_for_document.return_value = ["t1", "t2"]

        assert ledger.get_history("doc-1", "tenant-1") == ["t1", "t2"]
        transitions_repo.list_for_document.assert_called_once_with("doc-1", "tenant-1")


class TestGuardedTransition:
    @patch("intake.workflow.ledger.get_connection")
    def test_stage_moved_on_records_nothing(self, mock_get_conn: MagicMock) -> None:
        _mock_connection(mock_get_conn)
        document = _make_document("extracted")
        document.processing_stage = "classification"
        ledger, doc_repo, transitions_repo = _make_ledger(document)

        with pytest.raises(StaleTransitionError):
            ledger.record_transition(
                "doc-1",
                "tenant-1",
                DocumentStatus.ERROR,
                trigger="ocr_processing_job_failed",
                expected_stage=ProcessingStage.OCR,
            )

        doc_repo.apply_transition.assert_not_called()
        transitions_repo.insert.assert_not_called()

    @patch("intake.workflow.ledger.get_connection")
    def test_requeued_document_rejects_old_job(self, mock_get_conn: MagicMock) -> None:
        conn = _mock_connection(mock_get_conn)
        document = _make_document("processing")
        document.processing_stage = "ocr"
        ledger, doc_repo, transitions_repo = _make_ledger(document)
        transitions_repo.latest_job_id.return_value = 12

        with pytest.raises(StaleTransitionError):
            ledger.record_transition(
                "doc-1",
                "tenant-1",
                DocumentStatus.ERROR,
                trigger="ocr_processing_job_failed",
                expected_stage=ProcessingStage.OCR,
                expected_job_id=11,
            )

        transitions_repo.latest_job_id.assert_called_once_with(conn, "doc-1", "tenant-1")
        doc_repo.apply_transition.assert_not_called()

    @patch("intake.workflow.ledger.get_connection")
    def test_matching_job_is_recorded(self, mock_get_conn: MagicMock) -> None:
        _mock_connection(mock_get_conn)
        document = _make_document("processing")
        document.processing_stage = "ocr"
        ledger, doc_repo, transitions_repo = _make_ledger(document)
        transitions_repo.latest_job_id.return_value = 11

        transition = ledger.record_transition(
            "doc-1",
            "tenant-1",
            DocumentStatus.ERROR,
            trigger="ocr_processing_job_failed",
            expected_stage=ProcessingStage.OCR,
            expected_job_id=11,
        )

        assert transition.to_status == "error"
        doc_repo.apply_transition.assert_called_once()
