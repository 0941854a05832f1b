import re

from intake.ingestion.aliases import EmailAliasResolver
from intake.ingestion.attachments import (
    decode_attachment_content,
    is_financial_document,
    resolve_content_type,
    sanitize_filename,
)
from intake.ingestion.fingerprint import email_fingerprint
from intake.ingestion.models import (
    AttachmentOutcome,
    EmailMessage,
    IngestionEnvelope,
    IngestionResult,
    NormalizedAttachment,
)
from intake.ingestion.pipeline import DeliveryProcessor
from intake.ingestion.rules import IngestionRulesService
from intake.logging.logger import Log
from intake.workflow.exceptions import AttachmentDecodeError
from intake.workflow.models import UploadSource

SPAM_PATTERN = re.compile(r"\b(promo|discount|sale|click here|unsubscribe)\b", re.IGNORECASE)
LOGGED_BODY_CHARS = 1000


class EmailIngestionService:
    """Turns inbound emails with financial attachments into documents."""

    def __init__(
        self,
        processor: DeliveryProcessor,
        aliases: EmailAliasResolver,
        rules: IngestionRulesService,
    ) -> None:
        self._processor = processor
        self._aliases = aliases
        self._rules = rules

    def ingest(self, tenant_id: str, email: EmailMessage) -> IngestionResult:
        """Process an email sent to one of the tenant's aliases.

        Raises:
            EmailAliasNotFoundError: if the recipient is not an alias of the tenant.
        """
        alias = self._aliases.resolve(tenant_id, email.to)
        envelope = self.build_envelope(tenant_id, email)
        envelope.metadata["aliasId"] = alias.id

        duplicate = self._processor.find_duplicate(envelope)
        if duplicate is not None:
            return duplicate

        if not self.is_financially_relevant(email):
            Log.info(
                f"Email from {email.from_address} filtered for tenant {tenant_id}: "
                f"not financially relevant"
            )
            return IngestionResult(status="filtered")

        routing = self._rules.evaluate(
            tenant_id,
            {
                "sourceType": "email",
                "source": email.from_address,
                "to": alias.alias_email,
                "subject": email.subject,
                "attachmentCount": len(envelope.attachments),
            },
        )
        routing.apply_to(envelope)
        return self._processor.process(envelope)

    def is_financially_relevant(self, email: EmailMessage) -> bool:
        """At least one financial attachment and no spam markers."""
        if SPAM_PATTERN.search(email.subject) or SPAM_PATTERN.search(email.body):
            return False
        return any(
            is_financial_document(attachment.filename, attachment.content_type)
            for attachment in email.attachments
        )

    def build_envelope(self, tenant_id: str, email: EmailMessage) -> IngestionEnvelope:
        envelope = IngestionEnvelope(
            tenant_id=tenant_id,
            source_type="email",
            payload_hash=email_fingerprint(email.from_address, email.subject, email.body),
            trigger="email",
            key_prefix="emails",
            upload_source=UploadSource.EMAIL,
            payload={
                "from": email.from_address,
                "to": email.to,
                "subject": email.subject,
                "body": email.body[:LOGGED_BODY_CHARS],
                "attachmentCount": len(email.attachments),
            },
            metadata={"headers": email.headers},
            job_headers={"x-trigger": "email"},
        )
        for attachment in email.attachments:
            filename = sanitize_filename(attachment.filename)
            if not is_financial_document(attachment.filename, attachment.content_type):
                envelope.rejected.append(AttachmentOutcome(filename, "skipped"))
                continue
            try:
                content = decode_attachment_content(attachment.content)
            except AttachmentDecodeError as exc:
                Log.warning(f"Rejected email attachment {filename}: {exc}")
                envelope.rejected.append(AttachmentOutcome(filename, "rejected", error=str(exc)))
                continue
            envelope.attachments.append(
                NormalizedAttachment(
                    filename=filename,
                    content_type=resolve_content_type(filename, attachment.content_type),
                    content=content,
                )
            )
        return envelope
