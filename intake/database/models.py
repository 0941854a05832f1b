from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class DocumentRecord:
    """Represents a row from the documents table."""

    id: str
    tenant_id: str
    file_name: str
    mime_type: str
    byte_size: int
    status: str
    processing_stage: str
    upload_source: str
    document_type: str = "other"
    storage_key: str | None = None
    file_hash_sha256: str | None = None
    uploaded_by: str | None = None
    extracted_data: dict[str, Any] | None = None
    quality_score: int | None = None
    quality_issues: list[dict[str, Any]] = field(default_factory=list)
    quality_checklist: list[dict[str, Any]] = field(default_factory=list)
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class StageTransitionRecord:
    """Represents a row from the document_stage_transitions table."""

    id: int
    document_id: str
    tenant_id: str
    from_status: str | None
    to_status: str
    from_stage: str | None
    to_stage: str
    trigger: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass
class IngestionLogRecord:
    """Represents a row from the ingestion_log table."""

    id: str
    tenant_id: str
    source_type: str
    payload_hash: str
    connector_provider: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    document_ids: list[str] = field(default_factory=list)
    processing_status: str = "processing"
    created_at: datetime | None = None


@dataclass
class JobRecord:
    """Represents a row from the pipeline_jobs table."""

    id: int
    queue_name: str
    document_id: str | None
    payload: dict[str, Any]
    status: str
    attempts: int
    error_message: str | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class EmailAliasRecord:
    """Represents a row from the email_aliases table."""

    id: str
    tenant_id: str
    alias_email: str
    enabled: bool = True
    expires_at: datetime | None = None
    last_used_at: datetime | None = None


@dataclass
class IngestionRuleRecord:
    """Represents a row from the ingestion_rules table."""

    id: str
    tenant_id: str
    rule_name: str
    rule_type: str = "routing"
    priority: int = 0
    source_type: str | None = None
    source_pattern: str | None = None
    conditions: dict[str, Any] = field(default_factory=dict)
    actions: dict[str, Any] = field(default_factory=dict)
    target_classification: str | None = None
    target_workflow: str | None = None
