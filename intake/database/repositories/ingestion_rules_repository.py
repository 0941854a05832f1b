from typing import Any

from psycopg.rows import dict_row

from intake.database.connection import get_connection
from intake.database.models import IngestionRuleRecord


def _row_to_rule(row: dict[str, Any]) -> IngestionRuleRecord:
    return IngestionRuleRecord(
        id=str(row["id"]),
        tenant_id=row["tenant_id"],
        rule_name=row["rule_name"],
        rule_type=row["rule_type"],
        priority=row["priority"],
        source_type=row["source_type"],
        source_pattern=row["source_pattern"],
        conditions=row["conditions"] or {},
        actions=row["actions"] or {},
        target_classification=row["target_classification"],
        target_workflow=row["target_workflow"],
    )


class IngestionRulesRepository:
    """Read access to the ingestion_rules table."""

    def find_enabled(self, tenant_id: str) -> list[IngestionRuleRecord]:
        """Return the tenant's enabled rules, highest priority first."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, tenant_id, rule_name, rule_type, priority,
                           source_type, source_pattern, conditions, actions,
                           target_classification, target_workflow
                    FROM ingestion_rules
                    WHERE tenant_id = %s AND enabled = TRUE
                    ORDER BY priority DESC, created_at
                    """,
                    (tenant_id,),
                )
                rows = cur.fetchall()
        return [_row_to_rule(row) for row in rows]
