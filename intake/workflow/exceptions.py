class IntakeError(Exception):
    """Base exception for all intake-related errors."""


class ValidationError(IntakeError):
    """Raised when caller input is at fault. No record is mutated."""


class AttachmentDecodeError(ValidationError):
    """Raised when attachment content cannot be decoded to bytes."""


class NotFoundError(IntakeError):
    """Raised when a tenant-scoped record cannot be found."""


class DocumentNotFoundError(NotFoundError):
    """Raised when a document cannot be found in the database."""


class AuthenticationError(IntakeError):
    """Raised when a channel credential or signature is rejected."""


class DuplicateDeliveryError(IntakeError):
    """Raised when a delivery fingerprint was already processed."""

    def __init__(self, ingestion_log_id: str) -> None:
        super().__init__(f"Delivery already processed as {ingestion_log_id}")
        self.ingestion_log_id = ingestion_log_id


class TransientInfrastructureError(IntakeError):
    """Raised when an external collaborator fails in a retryable way."""


class BlobStoreError(TransientInfrastructureError):
    """Raised when the blob store cannot persist or return an object."""


class JobPublishError(TransientInfrastructureError):
    """Raised when a pipeline job cannot be handed to the queue."""


class InvariantViolation(IntakeError):
    """Raised when persisted state contradicts what the engine just wrote."""


class StaleTransitionError(IntakeError):
    """Raised when a guarded transition no longer matches the locked document."""


class EmailAliasNotFoundError(NotFoundError):
    """Raised when an inbound email's address is not an alias of the caller's tenant."""
