from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from intake.database.connection import get_connection
from intake.database.models import JobRecord

_JOB_COLUMNS = """
    id, queue_name, document_id, payload, status, attempts,
    error_message, locked_at, created_at, updated_at
"""


def _row_to_job(row: dict[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        queue_name=row["queue_name"],
        document_id=str(row["document_id"]) if row["document_id"] is not None else None,
        payload=row["payload"] or {},
        status=row["status"],
        attempts=row["attempts"],
        error_message=row["error_message"],
        locked_at=row["locked_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class JobRepository:
    """Database operations for the pipeline_jobs table."""

    def __init__(self, max_attempts: int) -> None:
        self._max_attempts = max_attempts

    def enqueue(
        self,
        queue_name: str,
        payload: dict[str, Any],
        persistent: bool = True,
    ) -> int:
        """Insert a pending job and return its id."""
        document_id = payload.get("documentId")
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO pipeline_jobs (queue_name, document_id, payload, persistent)
                    VALUES (%s, %s, %s, %s)
                    RETURNING id
                    """,
                    (queue_name, document_id, Jsonb(payload), persistent),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError(f"Insert into {queue_name} returned no row")
        return int(row[0])

    def claim_next_job(
        self,
        conn: psycopg.Connection[Any],
        queue_name: str,
    ) -> JobRecord | None:
        """Claim the next pending job on a queue using SELECT FOR UPDATE SKIP LOCKED."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_JOB_COLUMNS}
                FROM pipeline_jobs
                WHERE queue_name = %s
                  AND status = 'pending'
                  AND attempts < %s
                ORDER BY created_at
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """,
                (queue_name, self._max_attempts),
            )
            row = cur.fetchone()

        if row is None:
            return None

        conn.execute(
            """
            UPDATE pipeline_jobs
            SET status = 'processing', locked_at = NOW(), updated_at = NOW()
            WHERE id = %s
            """,
            (row["id"],),
        )
        conn.commit()

        job = _row_to_job(row)
        job.status = "processing"
        return job

    def mark_done(self, job_id: int) -> None:
        """Mark a job as done."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE pipeline_jobs
                SET status = 'done', updated_at = NOW()
                WHERE id = %s
                """,
                (job_id,),
            )
            conn.commit()

    def mark_failed(self, job_id: int, error: str) -> None:
        """Mark a job as permanently failed."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE pipeline_jobs
                SET status = 'failed', error_message = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (error, job_id),
            )
            conn.commit()

    def increment_attempts(self, job_id: int) -> None:
        """Increment attempt count and return job to pending."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE pipeline_jobs
                SET attempts = attempts + 1, status = 'pending',
                    locked_at = NULL, updated_at = NOW()
                WHERE id = %s
                """,
                (job_id,),
            )
            conn.commit()

    def find_unacknowledged_failures(self, limit: int) -> list[JobRecord]:
        """Return permanently failed jobs the recovery sweep has not handled yet."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_JOB_COLUMNS}
                    FROM pipeline_jobs
                    WHERE status = 'failed'
                      AND acknowledged_at IS NULL
                    ORDER BY updated_at
                    LIMIT %s
                    """,
                    (limit,),
                )
                rows = cur.fetchall()
        return [_row_to_job(row) for row in rows]

    def acknowledge(self, job_id: int) -> None:
        """Mark a failed job as handled by the recovery sweep."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE pipeline_jobs
                SET acknowledged_at = NOW(), updated_at = NOW()
                WHERE id = %s
                """,
                (job_id,),
            )
            conn.commit()

    def find_by_id(self, job_id: int) -> JobRecord | None:
        """Find a job by ID. Useful for tests."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_JOB_COLUMNS}
                    FROM pipeline_jobs
                    WHERE id = %s
                    """,
                    (job_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return _row_to_job(row)
