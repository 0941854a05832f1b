from fastapi import Header, Request

from intake.services import IntakeServices
from intake.workflow.exceptions import AuthenticationError


def get_services(request: Request) -> IntakeServices:
    return request.app.state.services


def require_tenant(
    request: Request,
    x_api_key: str | None = Header(default=None),
    x_ingestion_key: str | None = Header(default=None),
) -> str:
    """Resolve the calling tenant from its ingestion API key.

    Raises:
        AuthenticationError: if the key is missing, unknown, inactive or expired.
    """
    services = get_services(request)
    verification = services.credentials.verify_api_key(x_api_key or x_ingestion_key or "")
    if not verification.is_valid or verification.tenant_id is None:
        raise AuthenticationError(verification.error or "Invalid ingestion API key")
    return verification.tenant_id
