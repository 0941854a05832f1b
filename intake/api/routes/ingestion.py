from fastapi import APIRouter, Depends, File, Header, UploadFile

from intake.api.dependencies import get_services, require_tenant
from intake.api.schemas import InboundEmailRequest, WebhookRequest, ingestion_response
from intake.services import IntakeServices

router = APIRouter(prefix="/ingestion", tags=["ingestion"])


@router.post("/email/inbound")
def email_inbound(
    payload: InboundEmailRequest,
    tenant_id: str = Depends(require_tenant),
    services: IntakeServices = Depends(get_services),
) -> dict:
    """Accept one email from the inbound mail relay."""
    result = services.email.ingest(tenant_id, payload.to_message())
    return ingestion_response(result)


@router.post("/webhooks/{provider}")
def provider_webhook(
    provider: str,
    payload: WebhookRequest,
    tenant_id: str = Depends(require_tenant),
    services: IntakeServices = Depends(get_services),
    x_webhook_signature: str | None = Header(default=None),
    x_signature: str | None = Header(default=None),
) -> dict:
    """Accept one third-party webhook call."""
    signature = x_webhook_signature or x_signature
    result = services.webhook.ingest(tenant_id, payload.to_payload(provider, signature))
    return ingestion_response(result)


@router.post("/csv")
def csv_dropzone(
    file: UploadFile = File(...),
    tenant_id: str = Depends(require_tenant),
    services: IntakeServices = Depends(get_services),
    x_user_id: str | None = Header(default=None),
) -> dict:
    """Accept one bank or card export in CSV form."""
    try:
        content = file.file.read()
    finally:
        file.file.close()
    result = services.csv.ingest(
        tenant_id, file.filename or "", file.content_type, content, uploaded_by=x_user_id
    )
    return ingestion_response(result)
