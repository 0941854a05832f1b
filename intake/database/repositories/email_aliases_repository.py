from psycopg.rows import dict_row

from intake.database.connection import get_connection
from intake.database.models import EmailAliasRecord


class EmailAliasesRepository:
    """Database operations for the email_aliases table."""

    def find_active(self, alias_email: str) -> EmailAliasRecord | None:
        """Return the enabled, unexpired alias for an address, matched case-insensitively."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, tenant_id, alias_email, enabled, expires_at, last_used_at
                    FROM email_aliases
                    WHERE lower(alias_email) = lower(%s)
                      AND enabled = TRUE
                      AND (expires_at IS NULL OR expires_at > NOW())
                    LIMIT 1
                    """,
                    (alias_email,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return EmailAliasRecord(
            id=str(row["id"]),
            tenant_id=row["tenant_id"],
            alias_email=row["alias_email"],
            enabled=row["enabled"],
            expires_at=row["expires_at"],
            last_used_at=row["last_used_at"],
        )

    def mark_used(self, alias_id: str) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE email_aliases
                SET last_used_at = NOW(), updated_at = NOW()
                WHERE id = %s
                """,
                (alias_id,),
            )
            conn.commit()
