import hashlib
import json
from typing import Any

EMAIL_BODY_PREFIX_CHARS = 500


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys and no whitespace so equal payloads hash equally."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def email_fingerprint(from_address: str, subject: str, body: str) -> str:
    """Hash sender, subject and the first 500 characters of the body."""
    return _sha256(f"{from_address}:{subject}:{body[:EMAIL_BODY_PREFIX_CHARS]}")


def webhook_fingerprint(
    provider: str,
    event_type: str,
    data: dict[str, Any],
    webhook_id: str | None,
) -> str:
    """Hash provider, event type, normalized data and webhook id."""
    return _sha256(
        canonical_json(
            {
                "provider": provider,
                "eventType": event_type,
                "data": data,
                "webhookId": webhook_id,
            }
        )
    )


def content_fingerprint(content: bytes) -> str:
    """Hash raw file bytes."""
    return hashlib.sha256(content).hexdigest()
