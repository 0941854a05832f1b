from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from intake.database.connection import get_connection
from intake.database.models import StageTransitionRecord


def _row_to_transition(row: dict[str, Any]) -> StageTransitionRecord:
    return StageTransitionRecord(
        id=row["id"],
        document_id=str(row["document_id"]),
        tenant_id=row["tenant_id"],
        from_status=row["from_status"],
        to_status=row["to_status"],
        from_stage=row["from_stage"],
        to_stage=row["to_stage"],
        trigger=row["trigger"],
        metadata=row["metadata"] or {},
        created_at=row["created_at"],
    )


class StageTransitionsRepository:
    """Append-only access to the document_stage_transitions table."""

    def insert(
        self,
        conn: psycopg.Connection[Any],
        *,
        document_id: str,
        tenant_id: str,
        from_status: str | None,
        to_status: str,
        from_stage: str | None,
        to_stage: str,
        trigger: str,
        metadata: dict[str, Any],
    ) -> StageTransitionRecord:
        """Append one transition row inside the caller's transaction."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                INSERT INTO document_stage_transitions (
                    document_id, tenant_id, from_status, to_status,
                    from_stage, to_stage, trigger, metadata, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, clock_timestamp())
                RETURNING id, document_id, tenant_id, from_status, to_status,
                          from_stage, to_stage, trigger, metadata, created_at
                """,
                (
                    document_id,
                    tenant_id,
                    from_status,
                    to_status,
                    from_stage,
                    to_stage,
                    trigger,
                    Jsonb(metadata),
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise RuntimeError(f"Insert of transition for document {document_id} returned no row")
        return _row_to_transition(row)

    def list_for_document(self, document_id: str, tenant_id: str) -> list[StageTransitionRecord]:
        """Return the document's transitions oldest-first."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, document_id, tenant_id, from_status, to_status,
                           from_stage, to_stage, trigger, metadata, created_at
                    FROM document_stage_transitions
                    WHERE document_id = %s AND tenant_id = %s
                    ORDER BY created_at, id
                    """,
                    (document_id, tenant_id),
                )
                rows = cur.fetchall()
        return [_row_to_transition(row) for row in rows]

    def count_retries(self, document_id: str, tenant_id: str) -> int:
        """Count retry transitions recorded for a document."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT COUNT(*)
                    FROM document_stage_transitions
                    WHERE document_id = %s AND tenant_id = %s
                      AND trigger LIKE 'retry\\_%%'
                    """,
                    (document_id, tenant_id),
                )
                row = cur.fetchone()
        return int(row[0]) if row is not None else 0

    def latest_job_id(
        self,
        conn: psycopg.Connection[Any],
        document_id: str,
        tenant_id: str,
    ) -> int | None:
        """Return the job id of the most recent transition that queued a job."""
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT (metadata->>'jobId')::bigint
                FROM document_stage_transitions
                WHERE document_id = %s AND tenant_id = %s
                  AND metadata->>'jobId' IS NOT NULL
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (document_id, tenant_id),
            )
            row = cur.fetchone()
        return int(row[0]) if row is not None else None
