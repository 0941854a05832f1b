from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ApiKeyVerification:
    """Outcome of checking a channel API key."""

    is_valid: bool
    tenant_id: str | None = None
    error: str | None = None


class BaseCredentialVerifier(ABC):
    """Contract for channel credential verification."""

    @abstractmethod
    def verify_api_key(self, api_key: str) -> ApiKeyVerification:
        """Check an API key presented by an email relay or webhook sender.

        Returns:
            ApiKeyVerification with the owning tenant when the key is valid.
        """
