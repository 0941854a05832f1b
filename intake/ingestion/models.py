from dataclasses import dataclass, field
from typing import Any, Literal

from intake.workflow.models import UploadSource

SourceType = Literal["email", "webhook", "csv", "upload"]
AttachmentStatus = Literal["queued", "error", "rejected", "skipped"]
DeliveryStatus = Literal["processed", "duplicate", "filtered"]


@dataclass(frozen=True)
class EmailAttachment:
    """Attachment as delivered by the inbound mail relay."""

    filename: str
    content: bytes | str
    content_type: str | None = None


@dataclass(frozen=True)
class EmailMessage:
    """Inbound email delivery."""

    from_address: str
    to: str
    subject: str
    body: str
    html: str | None = None
    attachments: list[EmailAttachment] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookAttachment:
    """Attachment carried by a webhook, either top-level or nested in data."""

    filename: str | None = None
    content_type: str | None = None
    content: bytes | str | None = None
    content_base64: str | None = None


@dataclass(frozen=True)
class WebhookPayload:
    """Inbound third-party webhook call."""

    provider: str
    event_type: str
    data: dict[str, Any]
    signature: str | None = None
    timestamp: str | None = None
    webhook_id: str | None = None
    attachments: list[WebhookAttachment] = field(default_factory=list)


@dataclass(frozen=True)
class NormalizedAttachment:
    """Decoded attachment ready to be stored."""

    filename: str
    content_type: str
    content: bytes


@dataclass
class AttachmentOutcome:
    """What happened to one attachment of a delivery."""

    filename: str
    status: AttachmentStatus
    document_id: str | None = None
    error: str | None = None


@dataclass
class IngestionEnvelope:
    """Channel-agnostic form of one delivery. Never persisted itself."""

    tenant_id: str
    source_type: SourceType
    payload_hash: str
    trigger: str
    key_prefix: str
    upload_source: UploadSource
    connector_provider: str | None = None
    attachments: list[NormalizedAttachment] = field(default_factory=list)
    rejected: list[AttachmentOutcome] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    job_headers: dict[str, str] = field(default_factory=dict)


@dataclass
class IngestionResult:
    """Outcome of one delivery."""

    status: DeliveryStatus
    ingestion_log_id: str | None = None
    attachments: list[AttachmentOutcome] = field(default_factory=list)
    existing_document_ids: list[str] = field(default_factory=list)

    @property
    def document_ids(self) -> list[str]:
        if self.status == "duplicate":
            return list(self.existing_document_ids)
        return [a.document_id for a in self.attachments if a.document_id is not None]
