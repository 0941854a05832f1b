import uuid
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from intake.database.connection import get_connection
from intake.database.models import DocumentRecord
from intake.workflow.exceptions import DocumentNotFoundError

_DOCUMENT_COLUMNS = """
    id, tenant_id, uploaded_by, file_name, mime_type, byte_size, file_hash_sha256,
    storage_key, document_type, status, processing_stage, extracted_data,
    quality_score, quality_issues, quality_checklist, error_message,
    upload_source, created_at, updated_at
"""


def _is_document_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, TypeError):
        return False
    return True


def _row_to_document(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=str(row["id"]),
        tenant_id=row["tenant_id"],
        uploaded_by=row["uploaded_by"],
        file_name=row["file_name"],
        mime_type=row["mime_type"],
        byte_size=row["byte_size"],
        file_hash_sha256=row["file_hash_sha256"],
        storage_key=row["storage_key"],
        document_type=row["document_type"],
        status=row["status"],
        processing_stage=row["processing_stage"],
        extracted_data=row["extracted_data"],
        quality_score=row["quality_score"],
        quality_issues=row["quality_issues"] or [],
        quality_checklist=row["quality_checklist"] or [],
        error_message=row["error_message"],
        upload_source=row["upload_source"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class DocumentsRepository:
    """Database operations for the documents table.

    Status and processing_stage are only ever written by ``apply_transition``,
    which the stage transition ledger calls while holding the row lock.
    """

    def create(self, document: DocumentRecord) -> DocumentRecord:
        """Insert a new document row and return it with its timestamps."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO documents (
                        id, tenant_id, uploaded_by, file_name, mime_type, byte_size,
                        file_hash_sha256, storage_key, document_type, status,
                        processing_stage, quality_score, quality_issues,
                        quality_checklist, upload_source, created_at, updated_at
                    ) VALUES (
                        %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                        NOW(), NOW()
                    )
                    RETURNING {_DOCUMENT_COLUMNS}
                    """,
                    (
                        document.id,
                        document.tenant_id,
                        document.uploaded_by,
                        document.file_name,
                        document.mime_type,
                        document.byte_size,
                        document.file_hash_sha256,
                        document.storage_key,
                        document.document_type,
                        document.status,
                        document.processing_stage,
                        document.quality_score,
                        Jsonb(document.quality_issues),
                        Jsonb(document.quality_checklist),
                        document.upload_source,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError(f"Insert of document {document.id} returned no row")
        return _row_to_document(row)

    def find_by_id(self, document_id: str, tenant_id: str) -> DocumentRecord:
        """Find a document by ID within a tenant.

        Raises:
            DocumentNotFoundError: if no document with this ID exists for the tenant.
        """
        if not _is_document_id(document_id):
            raise DocumentNotFoundError(f"Document {document_id} not found")
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_DOCUMENT_COLUMNS}
                    FROM documents
                    WHERE id = %s AND tenant_id = %s
                    """,
                    (document_id, tenant_id),
                )
                row = cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _row_to_document(row)

    def lock_for_update(
        self,
        conn: psycopg.Connection[Any],
        document_id: str,
        tenant_id: str,
    ) -> DocumentRecord | None:
        """Read the document row with SELECT FOR UPDATE inside the caller's transaction."""
        if not _is_document_id(document_id):
            return None
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_DOCUMENT_COLUMNS}
                FROM documents
                WHERE id = %s AND tenant_id = %s
                FOR UPDATE
                """,
                (document_id, tenant_id),
            )
            row = cur.fetchone()
        return _row_to_document(row) if row is not None else None

    def apply_transition(
        self,
        conn: psycopg.Connection[Any],
        document_id: str,
        tenant_id: str,
        *,
        stage: str,
        status: str | None,
        error_message: str | None,
    ) -> None:
        """Write the stage projection, and the status when one is given.

        With a status the error message is replaced; without one it is kept
        unless a new message is supplied.
        """
        with conn.cursor() as cur:
            if status is not None:
                cur.execute(
                    """
                    UPDATE documents
                    SET status = %s,
                        processing_stage = %s,
                        error_message = %s,
                        updated_at = NOW()
                    WHERE id = %s AND tenant_id = %s
                    """,
                    (status, stage, error_message, document_id, tenant_id),
                )
            else:
                cur.execute(
                    """
                    UPDATE documents
                    SET processing_stage = %s,
                        error_message = COALESCE(%s, error_message),
                        updated_at = NOW()
                    WHERE id = %s AND tenant_id = %s
                    """,
                    (stage, error_message, document_id, tenant_id),
                )
            if cur.rowcount == 0:
                raise DocumentNotFoundError(f"Document {document_id} not found")

    def update_extracted_data(
        self,
        document_id: str,
        tenant_id: str,
        extracted_data: dict[str, Any],
    ) -> None:
        """Merge worker output into extracted_data.

        Raises:
            DocumentNotFoundError: if no document with this ID exists for the tenant.
        """
        if not _is_document_id(document_id):
            raise DocumentNotFoundError(f"Document {document_id} not found")
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE documents
                    SET extracted_data = COALESCE(extracted_data, '{}'::jsonb) || %s,
                        updated_at = NOW()
                    WHERE id = %s AND tenant_id = %s
                    """,
                    (Jsonb(extracted_data), document_id, tenant_id),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
            conn.commit()

    def find_retry_candidates(
        self,
        older_than_seconds: int,
        limit: int,
    ) -> list[DocumentRecord]:
        """Return documents in error whose last update is older than the backoff."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_DOCUMENT_COLUMNS}
                    FROM documents
                    WHERE status = 'error'
                      AND updated_at < NOW() - make_interval(secs => %s)
                    ORDER BY updated_at
                    LIMIT %s
                    """,
                    (older_than_seconds, limit),
                )
                rows = cur.fetchall()
        return [_row_to_document(row) for row in rows]

    def find_for_job(self, document_id: str) -> DocumentRecord | None:
        """Find a document referenced by a pipeline job, which carries no tenant."""
        if not _is_document_id(document_id):
            return None
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_DOCUMENT_COLUMNS}
                    FROM documents
                    WHERE id = %s
                    """,
                    (document_id,),
                )
                row = cur.fetchone()
        return _row_to_document(row) if row is not None else None
