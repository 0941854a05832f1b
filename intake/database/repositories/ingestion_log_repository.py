from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from intake.database.connection import get_connection
from intake.database.models import IngestionLogRecord
from intake.workflow.exceptions import DuplicateDeliveryError


def _row_to_log(row: dict[str, Any]) -> IngestionLogRecord:
    return IngestionLogRecord(
        id=str(row["id"]),
        tenant_id=row["tenant_id"],
        source_type=row["source_type"],
        connector_provider=row["connector_provider"],
        payload_hash=row["payload_hash"],
        payload=row["payload"] or {},
        metadata=row["metadata"] or {},
        document_ids=[str(doc_id) for doc_id in row["document_ids"] or []],
        processing_status=row["processing_status"],
        created_at=row["created_at"],
    )


class IngestionLogRepository:
    """Database operations for the ingestion_log table.

    The unique constraint on (tenant_id, source_type, payload_hash) is what
    makes concurrent identical deliveries resolve to a single winner.
    """

    def find_by_fingerprint(
        self,
        tenant_id: str,
        source_type: str,
        payload_hash: str,
    ) -> IngestionLogRecord | None:
        """Find an earlier delivery with the same fingerprint."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, tenant_id, source_type, connector_provider, payload_hash,
                           payload, metadata, document_ids, processing_status, created_at
                    FROM ingestion_log
                    WHERE tenant_id = %s AND source_type = %s AND payload_hash = %s
                    LIMIT 1
                    """,
                    (tenant_id, source_type, payload_hash),
                )
                row = cur.fetchone()
        return _row_to_log(row) if row is not None else None

    def claim(
        self,
        *,
        tenant_id: str,
        source_type: str,
        payload_hash: str,
        connector_provider: str | None,
        payload: dict[str, Any],
        metadata: dict[str, Any],
    ) -> str:
        """Insert the log row for a new delivery and return its id.

        Raises:
            DuplicateDeliveryError: if another delivery already holds the fingerprint.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO ingestion_log (
                        tenant_id, source_type, connector_provider, payload_hash,
                        payload, metadata, processing_status, created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, 'processing', NOW(), NOW())
                    ON CONFLICT ON CONSTRAINT uq_ingestion_log_fingerprint DO NOTHING
                    RETURNING id
                    """,
                    (
                        tenant_id,
                        source_type,
                        connector_provider,
                        payload_hash,
                        Jsonb(payload),
                        Jsonb(metadata),
                    ),
                )
                row = cur.fetchone()
                if row is None:
                    cur.execute(
                        """
                        SELECT id FROM ingestion_log
                        WHERE tenant_id = %s AND source_type = %s AND payload_hash = %s
                        """,
                        (tenant_id, source_type, payload_hash),
                    )
                    existing = cur.fetchone()
                    conn.commit()
                    if existing is None:
                        raise RuntimeError(
                            f"Fingerprint {payload_hash} conflicted but no log row is visible"
                        )
                    raise DuplicateDeliveryError(str(existing[0]))
            conn.commit()
        return str(row[0])

    def complete(
        self,
        log_id: str,
        document_ids: list[str],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record the documents produced by a delivery and mark it completed."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE ingestion_log
                SET document_ids = %s,
                    metadata = metadata || %s,
                    processing_status = 'completed',
                    updated_at = NOW()
                WHERE id = %s
                """,
                (Jsonb(document_ids), Jsonb(metadata or {}), log_id),
            )
            conn.commit()

    def release(self, log_id: str) -> None:
        """Delete a claimed log row so the same delivery can be processed again."""
        with get_connection() as conn:
            conn.execute("DELETE FROM ingestion_log WHERE id = %s", (log_id,))
            conn.commit()
