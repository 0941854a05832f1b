from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from intake.database.models import DocumentRecord, StageTransitionRecord
from intake.ingestion.models import (
    EmailAttachment,
    EmailMessage,
    IngestionResult,
    WebhookAttachment,
    WebhookPayload,
)
from intake.ingestion.upload_ingestion import UploadResult


class AttachmentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str | None = None
    content_type: str | None = Field(default=None, alias="contentType")
    content: str | None = None
    content_base64: str | None = Field(default=None, alias="contentBase64")


class InboundEmailRequest(BaseModel):
    """Body posted by the inbound mail relay. Attachment content is base64."""

    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(..., min_length=1)
    from_address: str = Field(..., min_length=1, alias="from")
    subject: str = Field(..., min_length=1)
    body: str = ""
    html: str | None = None
    attachments: list[AttachmentIn] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)

    def to_message(self) -> EmailMessage:
        return EmailMessage(
            from_address=self.from_address,
            to=self.to,
            subject=self.subject,
            body=self.body,
            html=self.html,
            attachments=[
                EmailAttachment(
                    filename=item.filename or "",
                    content=item.content or item.content_base64 or "",
                    content_type=item.content_type,
                )
                for item in self.attachments
            ],
            headers=self.headers,
        )


class WebhookRequest(BaseModel):
    """Provider webhook body. Without a ``data`` object the whole body is the data."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_type: str | None = Field(default=None, alias="eventType")
    type: str | None = None
    data: dict[str, Any] | None = None
    timestamp: str | None = None
    webhook_id: str | None = Field(default=None, alias="webhookId")
    id: str | None = None
    attachments: list[AttachmentIn] = Field(default_factory=list)

    def to_payload(self, provider: str, signature: str | None) -> WebhookPayload:
        if self.data is not None:
            data = self.data
        else:
            data = self.model_dump(by_alias=True, exclude={"attachments"}, exclude_none=True)
        return WebhookPayload(
            provider=provider,
            event_type=self.event_type or self.type or "unknown",
            data=data,
            signature=signature,
            timestamp=self.timestamp,
            webhook_id=self.webhook_id or self.id,
            attachments=[
                WebhookAttachment(
                    filename=item.filename,
                    content_type=item.content_type,
                    content=item.content,
                    content_base64=item.content_base64,
                )
                for item in self.attachments
            ],
        )


class RetryRequest(BaseModel):
    reason: str = "manual_retry"


def ingestion_response(result: IngestionResult) -> dict[str, Any]:
    return {
        "status": result.status,
        "ingestionLogId": result.ingestion_log_id,
        "documentIds": result.document_ids,
        "attachments": [asdict(outcome) for outcome in result.attachments],
    }


def upload_response(result: UploadResult) -> dict[str, Any]:
    response: dict[str, Any] = {
        "ingestionLogId": result.ingestion_log_id,
        "documentId": result.document_id,
        "duplicate": result.duplicate,
    }
    if result.quality is not None:
        response["quality"] = asdict(result.quality)
    if result.gate is not None:
        response["qualityGate"] = result.gate.status
    if result.error is not None:
        response["error"] = result.error
    return response


def document_response(document: DocumentRecord) -> dict[str, Any]:
    return {
        "id": document.id,
        "fileName": document.file_name,
        "mimeType": document.mime_type,
        "byteSize": document.byte_size,
        "documentType": document.document_type,
        "status": document.status,
        "processingStage": document.processing_stage,
        "uploadSource": document.upload_source,
        "qualityScore": document.quality_score,
        "qualityIssues": document.quality_issues,
        "qualityChecklist": document.quality_checklist,
        "errorMessage": document.error_message,
        "createdAt": document.created_at,
        "updatedAt": document.updated_at,
    }


def transition_response(transition: StageTransitionRecord) -> dict[str, Any]:
    return {
        "id": transition.id,
        "fromStatus": transition.from_status,
        "toStatus": transition.to_status,
        "fromStage": transition.from_stage,
        "toStage": transition.to_stage,
        "trigger": transition.trigger,
        "metadata": transition.metadata,
        "createdAt": transition.created_at,
    }
