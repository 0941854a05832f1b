"""Pre-ingest quality gate.

Scores one file before it enters the pipeline. The score starts at 100,
each detected issue deducts a fixed penalty, and the result is clamped to
[0, 100]. Scoring never blocks ingestion: the gate decision only decides
whether the document is prioritized for human review.
"""

import io
import re

from PIL import Image, UnidentifiedImageError

from intake.logging.logger import Log
from intake.pdf.base import BasePdfInspector
from intake.pdf.exceptions import PdfInspectionError
from intake.quality.checklists import build_checklist, flag_checklist
from intake.quality.models import (
    QualityAssessmentResult,
    QualityGateDecision,
    QualityIssue,
)
from intake.workflow.models import DocumentType

FILE_SIZE_WARN_LOW = 30 * 1024
FILE_SIZE_WARN_HIGH = 20 * 1024 * 1024
MIN_IMAGE_DIMENSION = 900
MAX_RECOMMENDED_PAGES = 25
MIN_TEXT_LENGTH_PER_PAGE = 20
MIN_BYTES_PER_MEGAPIXEL = 45_000
MIN_ASPECT_RATIO = 0.5
MAX_ASPECT_RATIO = 2.0
GATE_MIN_SCORE = 70

UNREADABLE_ITEMS = ("totals", "amount", "readable")

KNOWN_KEYWORDS: list[tuple[re.Pattern[str], DocumentType]] = [
    (re.compile(r"invoice", re.IGNORECASE), DocumentType.INVOICE),
    (re.compile(r"receipt|till", re.IGNORECASE), DocumentType.RECEIPT),
    (re.compile(r"statement", re.IGNORECASE), DocumentType.STATEMENT),
    (re.compile(r"payslip|paystub|payroll", re.IGNORECASE), DocumentType.PAYSLIP),
    (re.compile(r"vat|tax", re.IGNORECASE), DocumentType.TAX_FORM),
]


def infer_document_type(
    file_name: str,
    declared_type: DocumentType | str | None = None,
) -> DocumentType:
    """Use the declared type when valid, otherwise match filename keywords."""
    if declared_type:
        try:
            return DocumentType(declared_type)
        except ValueError:
            Log.warning(f"Ignoring unknown declared document type '{declared_type}'")
    for pattern, document_type in KNOWN_KEYWORDS:
        if pattern.search(file_name):
            return document_type
    return DocumentType.OTHER


class QualityAssessor:
    """Scores raw document bytes and metadata. Stateless."""

    def __init__(self, pdf_inspector: BasePdfInspector) -> None:
        self._pdf_inspector = pdf_inspector

    def assess(
        self,
        content: bytes,
        mime_type: str,
        file_name: str,
        declared_type: DocumentType | str | None = None,
    ) -> QualityAssessmentResult:
        suggested_type = infer_document_type(file_name, declared_type)
        result = QualityAssessmentResult(
            score=100,
            suggested_type=suggested_type,
            checklist=build_checklist(suggested_type),
        )

        size = len(content)
        if size < FILE_SIZE_WARN_LOW:
            self._add_issue(
                result,
                QualityIssue(
                    id="file_too_small",
                    severity="warning",
                    message="The file looks very small and may be unreadable.",
                    recommendation="Rescan or export at a higher resolution before uploading.",
                ),
                penalty=15,
                flag=UNREADABLE_ITEMS,
            )
        if size > FILE_SIZE_WARN_HIGH:
            self._add_issue(
                result,
                QualityIssue(
                    id="file_too_large",
                    severity="info",
                    message="Large file detected; processing may take longer.",
                    recommendation="Consider compressing the PDF or image.",
                ),
                penalty=5,
            )

        mime = (mime_type or "").lower()
        lower_name = file_name.lower()
        if "pdf" in mime or lower_name.endswith(".pdf"):
            self._assess_pdf(result, content)
        elif mime.startswith("image/"):
            self._assess_image(result, content)
        elif mime == "text/csv" or lower_name.endswith(".csv"):
            self._add_issue(
                result,
                QualityIssue(
                    id="csv_upload",
                    severity="info",
                    message="CSV detected. Use statement CSVs only for bank imports.",
                    recommendation="PDF statements provide richer context for automated reconciliation.",
                ),
                penalty=5,
            )

        result.score = max(0, min(100, result.score))
        return result

    def _assess_pdf(self, result: QualityAssessmentResult, content: bytes) -> None:
        try:
            inspection = self._pdf_inspector.inspect(content)
        except PdfInspectionError as exc:
            Log.warning(f"PDF could not be parsed during quality assessment: {exc}")
            self._add_issue(
                result,
                QualityIssue(
                    id="pdf_unreadable",
                    severity="critical",
                    message="Unable to parse PDF. The file may be encrypted or corrupted.",
                    recommendation="Download the PDF again or export it without password protection.",
                ),
                penalty=35,
                flag=("readable",),
            )
            return

        result.page_count = inspection.page_count or 1
        if result.page_count > MAX_RECOMMENDED_PAGES:
            self._add_issue(
                result,
                QualityIssue(
                    id="too_many_pages",
                    severity="warning",
                    message=f"This PDF has {result.page_count} pages. Long statements slow down OCR.",
                    recommendation="Split long statements into monthly extracts for best accuracy.",
                ),
                penalty=10,
            )
        if len(inspection.text.strip()) < MIN_TEXT_LENGTH_PER_PAGE * max(1, result.page_count):
            self._add_issue(
                result,
                QualityIssue(
                    id="missing_content",
                    severity="critical",
                    message="The PDF looks mostly empty or unparseable.",
                    recommendation="Verify the export settings or re-download from the source system.",
                ),
                penalty=35,
                flag=UNREADABLE_ITEMS,
            )

    def _assess_image(self, result: QualityAssessmentResult, content: bytes) -> None:
        try:
            with Image.open(io.BytesIO(content)) as img:
                width, height = img.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            Log.warning(f"Image metadata could not be read during quality assessment: {exc}")
            self._add_issue(
                result,
                QualityIssue(
                    id="image_unreadable",
                    severity="critical",
                    message="Unable to read image metadata.",
                    recommendation="Try re-exporting the file as JPG or PNG.",
                ),
                penalty=25,
            )
            return

        if min(width, height) < MIN_IMAGE_DIMENSION:
            self._add_issue(
                result,
                QualityIssue(
                    id="low_resolution",
                    severity="warning",
                    message=f"Image resolution ({width}×{height}) may be too low for OCR.",
                    recommendation="Capture photos in good lighting and ensure text covers most of the frame.",
                ),
                penalty=15,
                flag=UNREADABLE_ITEMS,
            )

        ratio = width / height if height else 1.0
        if ratio > MAX_ASPECT_RATIO or ratio < MIN_ASPECT_RATIO:
            self._add_issue(
                result,
                QualityIssue(
                    id="orientation",
                    severity="info",
                    message="Image looks heavily landscape or portrait.",
                    recommendation="Crop away large margins so the document fills the image.",
                ),
                penalty=5,
            )

        megapixels = (width * height) / 1_000_000 if width and height else 0.0
        if megapixels > 0 and len(content) / megapixels < MIN_BYTES_PER_MEGAPIXEL:
            self._add_issue(
                result,
                QualityIssue(
                    id="blur_detected",
                    severity="warning",
                    message="Image appears heavily compressed or blurred.",
                    recommendation="Retake the photo in better lighting or export a higher-resolution image.",
                ),
                penalty=20,
                flag=UNREADABLE_ITEMS,
            )

    @staticmethod
    def _add_issue(
        result: QualityAssessmentResult,
        issue: QualityIssue,
        penalty: int,
        flag: tuple[str, ...] = (),
    ) -> None:
        result.issues.append(issue)
        result.score -= penalty
        if flag:
            flag_checklist(result.checklist, flag)


def evaluate_quality_gate(result: QualityAssessmentResult) -> QualityGateDecision:
    """needs_review on any critical issue or a score below the gate minimum."""
    critical = [issue for issue in result.issues if issue.severity == "critical"]
    if critical or result.score < GATE_MIN_SCORE:
        return QualityGateDecision(status="needs_review", reasons=critical)
    return QualityGateDecision(status="passed")
