from enum import Enum


class DocumentStatus(str, Enum):
    """Fine-grained lifecycle state of a document."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    EXTRACTED = "extracted"
    CLASSIFIED = "classified"
    POSTED = "posted"
    ERROR = "error"


class ProcessingStage(str, Enum):
    """Coarse-grained processing phase derived from the status."""

    DOCUMENT = "document"
    OCR = "ocr"
    CLASSIFICATION = "classification"
    LEDGER_POSTING = "ledger_posting"
    COMPLETED = "completed"
    ERROR = "error"


class DocumentType(str, Enum):
    INVOICE = "invoice"
    RECEIPT = "receipt"
    STATEMENT = "statement"
    PAYSLIP = "payslip"
    TAX_FORM = "tax_form"
    OTHER = "other"


class UploadSource(str, Enum):
    DASHBOARD = "dashboard"
    ONBOARDING = "onboarding"
    MOBILE = "mobile"
    API = "api"
    EMAIL = "email"
    WEBHOOK = "webhook"
    CSV = "csv"
    LEGACY = "legacy"


STATUS_STAGE_MAP: dict[DocumentStatus, ProcessingStage] = {
    DocumentStatus.UPLOADED: ProcessingStage.DOCUMENT,
    DocumentStatus.PROCESSING: ProcessingStage.OCR,
    DocumentStatus.EXTRACTED: ProcessingStage.CLASSIFICATION,
    DocumentStatus.CLASSIFIED: ProcessingStage.LEDGER_POSTING,
    DocumentStatus.POSTED: ProcessingStage.COMPLETED,
    DocumentStatus.ERROR: ProcessingStage.ERROR,
}

# Status a document returns to when a retry re-enters the given stage.
RETRY_STAGE_STATUS: dict[ProcessingStage, DocumentStatus] = {
    ProcessingStage.OCR: DocumentStatus.PROCESSING,
    ProcessingStage.CLASSIFICATION: DocumentStatus.EXTRACTED,
    ProcessingStage.LEDGER_POSTING: DocumentStatus.CLASSIFIED,
}


def stage_for_status(status: DocumentStatus | str | None) -> ProcessingStage:
    """Project a status onto its processing stage. Unknown or missing → document."""
    if status is None:
        return ProcessingStage.DOCUMENT
    try:
        return STATUS_STAGE_MAP[DocumentStatus(status)]
    except ValueError:
        return ProcessingStage.DOCUMENT
