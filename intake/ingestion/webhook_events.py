from dataclasses import dataclass
from enum import Enum
from typing import Any


class WebhookEventKind(str, Enum):
    ORDER = "order"
    ORDER_PAID = "order_paid"
    CHARGE = "charge"
    PAYOUT = "payout"
    TRANSACTION_SYNC = "transaction_sync"
    TRANSACTION = "transaction"
    UNHANDLED = "unhandled"


# (provider, event type) -> kind. Anything else is UNHANDLED.
KNOWN_EVENTS: dict[tuple[str, str], WebhookEventKind] = {
    ("shopify", "orders/create"): WebhookEventKind.ORDER,
    ("shopify", "orders/updated"): WebhookEventKind.ORDER,
    ("shopify", "orders/paid"): WebhookEventKind.ORDER_PAID,
    ("stripe", "charge.succeeded"): WebhookEventKind.CHARGE,
    ("stripe", "charge.updated"): WebhookEventKind.CHARGE,
    ("stripe", "payout.paid"): WebhookEventKind.PAYOUT,
    ("truelayer", "transaction_created"): WebhookEventKind.TRANSACTION,
    ("truelayer", "transaction_updated"): WebhookEventKind.TRANSACTION,
}


@dataclass(frozen=True)
class ProviderEvent:
    provider: str
    event_type: str
    kind: WebhookEventKind
    reference: str | None = None


def resolve_event(provider: str, event_type: str, data: dict[str, Any]) -> ProviderEvent:
    """Map a provider event onto the closed set of kinds we understand."""
    kind = KNOWN_EVENTS.get((provider, event_type), WebhookEventKind.UNHANDLED)
    if (
        provider == "plaid"
        and event_type == "TRANSACTIONS"
        and data.get("webhook_code") == "SYNC_UPDATES_AVAILABLE"
    ):
        kind = WebhookEventKind.TRANSACTION_SYNC
    reference = data.get("id")
    return ProviderEvent(
        provider=provider,
        event_type=event_type,
        kind=kind,
        reference=str(reference) if reference is not None else None,
    )
