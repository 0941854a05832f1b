import base64
import hashlib
import hmac
from typing import Any

from intake.ingestion.fingerprint import canonical_json


class WebhookSignatureVerifier:
    """HMAC-SHA256 verification of provider webhook signatures.

    Shopify signs with a base64 digest, Stripe with ``sha256=<hex>``, the rest
    with a plain hex digest. The signed message is the canonical JSON of data.
    """

    def __init__(self, secret: str) -> None:
        self._secret = secret.encode("utf-8")

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    def expected_signature(self, provider: str, data: dict[str, Any]) -> str:
        digest = hmac.new(self._secret, canonical_json(data).encode("utf-8"), hashlib.sha256)
        if provider == "shopify":
            return base64.b64encode(digest.digest()).decode("ascii")
        if provider == "stripe":
            return f"sha256={digest.hexdigest()}"
        return digest.hexdigest()

    def verify(self, provider: str, signature: str, data: dict[str, Any]) -> bool:
        expected = self.expected_signature(provider, data)
        return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))
