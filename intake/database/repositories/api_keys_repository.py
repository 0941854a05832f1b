import hashlib

from intake.database.connection import get_connection


def hash_api_key(api_key: str) -> str:
    """Return the SHA-256 hex digest stored for an API key."""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


class ApiKeysRepository:
    """Read access to the tenant_api_keys table."""

    def find_active_tenant(self, api_key: str) -> str | None:
        """Return the tenant owning an active, unexpired key, or None."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT tenant_id
                    FROM tenant_api_keys
                    WHERE key_hash = %s
                      AND is_active = TRUE
                      AND (expires_at IS NULL OR expires_at > NOW())
                    LIMIT 1
                    """,
                    (hash_api_key(api_key),),
                )
                row = cur.fetchone()
        return row[0] if row is not None else None
