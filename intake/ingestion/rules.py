"""Per-tenant ingestion rules.

A rule matches a delivery when its source type, its source pattern and every
condition hold for the delivery's metadata. Conditions are plain equality,
``"regex:<pattern>"`` strings, or operator objects using ``$eq``, ``$ne``,
``$gt``, ``$lt`` and ``$in``. Matching rules are applied from the lowest to
the highest priority, so the highest-priority rule wins any conflict.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from intake.database.models import IngestionRuleRecord
from intake.database.repositories.ingestion_rules_repository import IngestionRulesRepository
from intake.ingestion.models import IngestionEnvelope
from intake.logging.logger import Log

REGEX_PREFIX = "regex:"
ROUTING_HEADER = "x-routing"


@dataclass
class RoutingDecision:
    """Merged outcome of every rule that matched a delivery."""

    actions: dict[str, Any] = field(default_factory=dict)
    target_classification: str | None = None
    target_workflow: str | None = None
    matched_rules: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"actions": self.actions}
        if self.target_classification:
            result["targetClassification"] = self.target_classification
        if self.target_workflow:
            result["targetWorkflow"] = self.target_workflow
        return result

    def apply_to(self, envelope: IngestionEnvelope) -> None:
        """Forward the decision to pipeline workers and keep it in the delivery log."""
        envelope.job_headers[ROUTING_HEADER] = json.dumps(self.to_dict())
        envelope.metadata["routing"] = {**self.to_dict(), "matchedRules": self.matched_rules}


def _search(pattern: str, value: Any) -> bool:
    try:
        return re.search(pattern, "" if value is None else str(value)) is not None
    except re.error as exc:
        Log.warning(f"Ignoring invalid ingestion rule pattern {pattern!r}: {exc}")
        return False


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _matches_operators(operators: dict[str, Any], value: Any) -> bool:
    if "$eq" in operators and value != operators["$eq"]:
        return False
    if "$ne" in operators and value == operators["$ne"]:
        return False
    if "$gt" in operators:
        number, bound = _as_number(value), _as_number(operators["$gt"])
        if number is None or bound is None or number <= bound:
            return False
    if "$lt" in operators:
        number, bound = _as_number(value), _as_number(operators["$lt"])
        if number is None or bound is None or number >= bound:
            return False
    if "$in" in operators and isinstance(operators["$in"], list) and value not in operators["$in"]:
        return False
    return True


def matches_rule(rule: IngestionRuleRecord, metadata: dict[str, Any]) -> bool:
    if rule.source_type and metadata.get("sourceType") != rule.source_type:
        return False

    source = metadata.get("source")
    if rule.source_pattern and source and not _search(rule.source_pattern, source):
        return False

    for key, expected in rule.conditions.items():
        if expected is None:
            continue
        actual = metadata.get(key)
        if isinstance(expected, str) and expected.startswith(REGEX_PREFIX):
            if not _search(expected[len(REGEX_PREFIX):], actual):
                return False
        elif isinstance(expected, dict):
            if not _matches_operators(expected, actual):
                return False
        elif actual != expected:
            return False
    return True


def evaluate_rules(
    rules: list[IngestionRuleRecord],
    metadata: dict[str, Any],
) -> RoutingDecision:
    decision = RoutingDecision()
    for rule in sorted(rules, key=lambda r: r.priority):
        if not matches_rule(rule, metadata):
            continue
        decision.actions.update(rule.actions)
        if rule.target_classification:
            decision.target_classification = rule.target_classification
        if rule.target_workflow:
            decision.target_workflow = rule.target_workflow
        decision.matched_rules.append(rule.rule_name)
    return decision


class IngestionRulesService:
    """Evaluates a tenant's enabled rules against one delivery."""

    def __init__(self, rules_repo: IngestionRulesRepository) -> None:
        self._rules_repo = rules_repo

    def evaluate(self, tenant_id: str, metadata: dict[str, Any]) -> RoutingDecision:
        decision = evaluate_rules(self._rules_repo.find_enabled(tenant_id), metadata)
        if decision.matched_rules:
            Log.debug(
                f"Ingestion rules matched for {metadata.get('sourceType')} delivery",
                tenant=tenant_id,
                rules=",".join(decision.matched_rules),
            )
        return decision
