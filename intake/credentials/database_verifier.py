from intake.credentials.base import ApiKeyVerification, BaseCredentialVerifier
from intake.database.repositories.api_keys_repository import ApiKeysRepository


class DatabaseCredentialVerifier(BaseCredentialVerifier):
    """Verifies API keys against hashed keys in tenant_api_keys."""

    def __init__(self, api_keys_repo: ApiKeysRepository) -> None:
        self._api_keys_repo = api_keys_repo

    def verify_api_key(self, api_key: str) -> ApiKeyVerification:
        if not api_key:
            return ApiKeyVerification(is_valid=False, error="Missing ingestion API key")
        tenant_id = self._api_keys_repo.find_active_tenant(api_key)
        if tenant_id is None:
            return ApiKeyVerification(is_valid=False, error="Invalid API key")
        return ApiKeyVerification(is_valid=True, tenant_id=tenant_id)
