from unittest.mock import MagicMock

import pytest

from intake.pdf.base import BasePdfInspector, PdfInspection
from intake.pdf.exceptions import PdfInspectionError
from intake.quality.models import QualityAssessmentResult, QualityIssue
from intake.quality.scorer import QualityAssessor, evaluate_quality_gate, infer_document_type
from intake.workflow.models import DocumentType

PDF_40KB = b"%PDF-1.4" + b"0" * 40 * 1024


def _make_assessor(
    inspection: PdfInspection | None = None,
    error: Exception | None = None,
) -> tuple[QualityAssessor, MagicMock]:
    inspector = MagicMock(spec=BasePdfInspector)
    if error is not None:
        inspector.inspect.side_effect = error
    else:
        inspector.inspect.return_value = inspection or PdfInspection(page_count=1, text="x" * 500)
    return QualityAssessor(inspector), inspector


def _issue_ids(result: QualityAssessmentResult) -> list[str]:
    return [issue.id for issue in result.issues]


def _unchecked(result: QualityAssessmentResult) -> list[str]:
    return [item.id for item in result.checklist if not item.completed]


class TestInferDocumentType:
    @pytest.mark.parametrize(
        ("file_name", "expected"),
        [
            ("Invoice_March.pdf", DocumentType.INVOICE),
            ("till-slip.jpg", DocumentType.RECEIPT),
            ("bank statement.pdf", DocumentType.STATEMENT),
            ("payroll-2024.csv", DocumentType.PAYSLIP),
            ("VAT return.pdf", DocumentType.TAX_FORM),
            ("photo.png", DocumentType.OTHER),
        ],
    )
    def test_matches_filename_keywords(self, file_name: str, expected: DocumentType) -> None:
        assert infer_document_type(file_name) == expected

    def test_declared_type_wins(self) -> None:
        assert infer_document_type("invoice.pdf", "receipt") == DocumentType.RECEIPT

    def test_unknown_declared_type_falls_back_to_keywords(self) -> None:
        assert infer_document_type("invoice.pdf", "bogus") == DocumentType.INVOICE


class TestPdfAssessment:
    def test_clean_invoice_pdf_scores_high(self) -> None:
        assessor, inspector = _make_assessor()

        result = assessor.assess(PDF_40KB, "application/pdf", "invoice.pdf")

        inspector.inspect.assert_called_once_with(PDF_40KB)
        assert result.score >= 85
        assert result.suggested_type == DocumentType.INVOICE
        assert result.page_count == 1
        assert evaluate_quality_gate(result).status == "passed"
        assert [item.id for item in result.checklist] == [
            "vendor",
            "totals",
            "invoice-number",
            "dates",
        ]

    def test_small_file_is_penalized_and_flags_checklist(self) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(b"%PDF" + b"0" * 100, "application/pdf", "invoice.pdf")

        assert _issue_ids(result) == ["file_too_small"]
        assert result.score == 85
        assert _unchecked(result) == ["totals"]

    def test_unreadable_pdf_is_critical(self) -> None:
        assessor, _ = _make_assessor(error=PdfInspectionError("encrypted"))

        result = assessor.assess(PDF_40KB, "application/pdf", "scan.pdf")

        assert _issue_ids(result) == ["pdf_unreadable"]
        assert result.score == 65
        assert _unchecked(result) == ["readable"]
        assert evaluate_quality_gate(result).status == "needs_review"

    def test_missing_text_is_critical(self) -> None:
        assessor, _ = _make_assessor(PdfInspection(page_count=2, text="too short"))

        result = assessor.assess(PDF_40KB, "application/pdf", "statement.pdf")

        assert _issue_ids(result) == ["missing_content"]
        assert result.score == 65
        assert result.page_count == 2

    def test_long_pdf_warns_about_pages(self) -> None:
        assessor, _ = _make_assessor(PdfInspection(page_count=30, text="x" * 600))

        result = assessor.assess(PDF_40KB, "application/pdf", "statement.pdf")

        assert _issue_ids(result) == ["too_many_pages"]
        assert result.score == 90

    def test_pdf_detected_by_extension(self) -> None:
        assessor, inspector = _make_assessor()

        assessor.assess(PDF_40KB, "application/octet-stream", "invoice.PDF")

        inspector.inspect.assert_called_once()


class TestImageAssessment:
    def test_sharp_image_scores_full(self, sharp_png_bytes: bytes) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(sharp_png_bytes, "image/png", "receipt.png")

        assert result.issues == []
        assert result.score == 100

    def test_low_resolution_image(self, small_png_bytes: bytes) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(small_png_bytes, "image/png", "photo.png")

        assert _issue_ids(result) == ["low_resolution"]
        assert result.score == 85
        assert _unchecked(result) == ["readable"]

    def test_wide_image_flags_orientation(self, wide_png_bytes: bytes) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(wide_png_bytes, "image/png", "receipt.png")

        assert _issue_ids(result) == ["orientation"]
        assert result.score == 95

    def test_flat_image_looks_blurred(self, flat_png_bytes: bytes) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(flat_png_bytes, "image/png", "receipt.png")

        assert "blur_detected" in _issue_ids(result)
        assert "file_too_small" in _issue_ids(result)
        assert result.score == 65
        assert evaluate_quality_gate(result).status == "needs_review"

    def test_unreadable_image_is_critical(self) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(b"not an image" * 5000, "image/jpeg", "receipt.jpg")

        assert _issue_ids(result) == ["image_unreadable"]
        assert result.score == 75
        assert evaluate_quality_gate(result).status == "needs_review"


class TestOtherFormats:
    def test_csv_gets_info_issue(self) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(b"date,amount\n" * 4000, "text/csv", "bank.csv")

        assert _issue_ids(result) == ["csv_upload"]
        assert result.score == 95

    def test_large_file_gets_info_issue(self) -> None:
        assessor, _ = _make_assessor()

        result = assessor.assess(b"0" * (21 * 1024 * 1024), "text/csv", "export.csv")

        assert _issue_ids(result) == ["file_too_large", "csv_upload"]
        assert result.score == 90

    def test_score_is_clamped_at_zero(self) -> None:
        assessor, _ = _make_assessor(error=PdfInspectionError("broken"))
        result = assessor.assess(b"%PDF", "application/pdf", "scan.pdf")
        assert 0 <= result.score <= 100


class TestQualityGate:
    @staticmethod
    def _result(score: int, issues: list[QualityIssue] | None = None) -> QualityAssessmentResult:
        return QualityAssessmentResult(
            score=score, suggested_type=DocumentType.OTHER, issues=issues or []
        )

    def test_score_at_threshold_passes(self) -> None:
        assert evaluate_quality_gate(self._result(70)).status == "passed"

    def test_score_below_threshold_needs_review(self) -> None:
        assert evaluate_quality_gate(self._result(69)).status == "needs_review"

    def test_critical_issue_needs_review_regardless_of_score(self) -> None:
        critical = QualityIssue("pdf_unreadable", "critical", "Unreadable", "Re-export")
        decision = evaluate_quality_gate(self._result(100, [critical]))
        assert decision.status == "needs_review"
        assert decision.reasons == [critical]

    def test_warnings_alone_do_not_block(self) -> None:
        warning = QualityIssue("low_resolution", "warning", "Low", "Retake")
        assert evaluate_quality_gate(self._result(85, [warning])).status == "passed"
