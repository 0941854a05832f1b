from typing import Any

from intake.ingestion.attachments import (
    decode_attachment_content,
    is_financial_document,
    resolve_content_type,
    sanitize_filename,
)
from intake.ingestion.fingerprint import webhook_fingerprint
from intake.ingestion.models import (
    AttachmentOutcome,
    IngestionEnvelope,
    IngestionResult,
    NormalizedAttachment,
    WebhookAttachment,
    WebhookPayload,
)
from intake.ingestion.pipeline import DeliveryProcessor
from intake.ingestion.rules import IngestionRulesService
from intake.ingestion.signatures import WebhookSignatureVerifier
from intake.ingestion.webhook_events import WebhookEventKind, resolve_event
from intake.logging.logger import Log
from intake.workflow.exceptions import AttachmentDecodeError, AuthenticationError
from intake.workflow.models import UploadSource

# Fields of data that may carry attachments, checked in order.
NESTED_ATTACHMENT_FIELDS = ("attachments", "documents", "files")


def extract_attachments(payload: WebhookPayload) -> list[WebhookAttachment]:
    """Top-level attachments win; otherwise read the first nested list in data."""
    if payload.attachments:
        return list(payload.attachments)
    for field_name in NESTED_ATTACHMENT_FIELDS:
        nested = payload.data.get(field_name)
        if isinstance(nested, list):
            return [_attachment_from_dict(item) for item in nested if isinstance(item, dict)]
    return []


def _attachment_from_dict(item: dict[str, Any]) -> WebhookAttachment:
    return WebhookAttachment(
        filename=item.get("filename"),
        content_type=item.get("contentType"),
        content=item.get("content"),
        content_base64=item.get("contentBase64"),
    )


class WebhookIngestionService:
    """Logs third-party webhook calls and ingests any documents they carry."""

    def __init__(
        self,
        processor: DeliveryProcessor,
        signature_verifier: WebhookSignatureVerifier,
        rules: IngestionRulesService,
    ) -> None:
        self._processor = processor
        self._signature_verifier = signature_verifier
        self._rules = rules

    def ingest(self, tenant_id: str, payload: WebhookPayload) -> IngestionResult:
        """Process a webhook call.

        Raises:
            AuthenticationError: if a supplied signature does not match.
        """
        signature_verified = self._verify_signature(payload)

        event = resolve_event(payload.provider, payload.event_type, payload.data)
        envelope = self.build_envelope(tenant_id, payload)
        envelope.metadata["eventKind"] = event.kind.value
        envelope.metadata["signatureVerified"] = signature_verified

        duplicate = self._processor.find_duplicate(envelope)
        if duplicate is not None:
            return duplicate

        if event.kind == WebhookEventKind.UNHANDLED:
            Log.warning(
                f"Unhandled webhook event {payload.provider}/{payload.event_type}; "
                f"logging delivery only"
            )
        else:
            Log.info(
                f"Webhook event {payload.provider}/{payload.event_type} resolved as "
                f"{event.kind.value} (reference {event.reference})"
            )

        routing = self._rules.evaluate(
            tenant_id,
            {
                "sourceType": "webhook",
                "source": payload.provider,
                "eventType": payload.event_type,
                "eventKind": event.kind.value,
                "attachmentCount": len(envelope.attachments),
            },
        )
        routing.apply_to(envelope)
        return self._processor.process(envelope)

    def _verify_signature(self, payload: WebhookPayload) -> bool:
        if not payload.signature:
            return False
        if not self._signature_verifier.enabled:
            Log.warning(
                f"Webhook from {payload.provider} is signed but no signing secret is configured"
            )
            return False
        if not self._signature_verifier.verify(payload.provider, payload.signature, payload.data):
            raise AuthenticationError("Invalid webhook signature")
        return True

    def build_envelope(self, tenant_id: str, payload: WebhookPayload) -> IngestionEnvelope:
        envelope = IngestionEnvelope(
            tenant_id=tenant_id,
            source_type="webhook",
            payload_hash=webhook_fingerprint(
                payload.provider, payload.event_type, payload.data, payload.webhook_id
            ),
            trigger=f"{payload.provider}_webhook",
            key_prefix="webhooks",
            upload_source=UploadSource.WEBHOOK,
            connector_provider=payload.provider,
            payload=_without_attachment_content(payload.data),
            metadata={
                "eventType": payload.event_type,
                "webhookId": payload.webhook_id,
                "timestamp": payload.timestamp,
            },
            job_headers={"x-trigger": "webhook", "x-webhook-provider": payload.provider},
        )
        for attachment in extract_attachments(payload):
            filename = sanitize_filename(
                attachment.filename, fallback_prefix=f"{payload.provider}-attachment"
            )
            content_type = resolve_content_type(filename, attachment.content_type)
            try:
                content = decode_attachment_content(attachment.content, attachment.content_base64)
            except AttachmentDecodeError as exc:
                Log.warning(f"Rejected {payload.provider} webhook attachment {filename}: {exc}")
                envelope.rejected.append(AttachmentOutcome(filename, "rejected", error=str(exc)))
                continue
            if not is_financial_document(filename, content_type):
                envelope.rejected.append(AttachmentOutcome(filename, "skipped"))
                continue
            envelope.attachments.append(
                NormalizedAttachment(filename=filename, content_type=content_type, content=content)
            )
        return envelope


def _without_attachment_content(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of data with inline attachment bytes dropped, for the ingestion log."""
    logged = dict(data)
    for field_name in NESTED_ATTACHMENT_FIELDS:
        nested = logged.get(field_name)
        if isinstance(nested, list):
            logged[field_name] = [
                {k: v for k, v in item.items() if k not in ("content", "contentBase64")}
                if isinstance(item, dict)
                else item
                for item in nested
            ]
    return logged
