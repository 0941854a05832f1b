from fastapi import APIRouter, Depends, File, Form, Header, UploadFile

from intake.api.dependencies import get_services, require_tenant
from intake.api.schemas import (
    RetryRequest,
    document_response,
    transition_response,
    upload_response,
)
from intake.services import IntakeServices
from intake.workflow.models import UploadSource

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("/upload")
def upload_document(
    file: UploadFile = File(...),
    document_type: str | None = Form(default=None, alias="documentType"),
    source: str = Form(default=UploadSource.DASHBOARD.value),
    tenant_id: str = Depends(require_tenant),
    services: IntakeServices = Depends(get_services),
    x_user_id: str | None = Header(default=None),
) -> dict:
    """Score, store and queue one uploaded file."""
    try:
        content = file.file.read()
    finally:
        file.file.close()
    result = services.upload.upload(
        tenant_id,
        file.filename or "",
        file.content_type or "",
        content,
        declared_type=document_type,
        uploaded_by=x_user_id,
        upload_source=source,
    )
    return upload_response(result)


@router.post("/{document_id}/retry")
def retry_document(
    document_id: str,
    payload: RetryRequest | None = None,
    tenant_id: str = Depends(require_tenant),
    services: IntakeServices = Depends(get_services),
    x_user_id: str | None = Header(default=None),
) -> dict:
    reason = payload.reason if payload is not None else "manual_retry"
    transition = services.retry.retry(document_id, tenant_id, actor=x_user_id, reason=reason)
    return {"message": "Document re-queued", "transition": transition_response(transition)}


@router.get("/{document_id}")
def get_document(
    document_id: str,
    tenant_id: str = Depends(require_tenant),
    services: IntakeServices = Depends(get_services),
) -> dict:
    document = services.documents.find_by_id(document_id, tenant_id)
    return {"document": document_response(document)}


@router.get("/{document_id}/history")
def get_document_history(
    document_id: str,
    tenant_id: str = Depends(require_tenant),
    services: IntakeServices = Depends(get_services),
) -> dict:
    """Return the document's stage transitions, oldest first."""
    services.documents.find_by_id(document_id, tenant_id)
    history = services.ledger.get_history(document_id, tenant_id)
    return {"history": [transition_response(item) for item in history]}
