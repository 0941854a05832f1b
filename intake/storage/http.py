import httpx

from intake.storage.base import BaseBlobStore
from intake.workflow.exceptions import BlobStoreError


class HttpBlobStore(BaseBlobStore):
    """Blob store client for an HTTP object gateway (PUT/GET by key)."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        client: httpx.Client | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout_seconds)

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        timeout: float | None = None,
    ) -> str:
        try:
            response = self._client.put(
                f"/{key}",
                content=data,
                headers={"Content-Type": content_type},
                timeout=timeout if timeout is not None else self._timeout_seconds,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise BlobStoreError(f"Blob upload timed out for {key}") from exc
        except httpx.HTTPError as exc:
            raise BlobStoreError(f"Blob upload failed for {key}: {exc}") from exc
        return key

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get(f"/{key}")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise BlobStoreError(f"Blob download failed for {key}: {exc}") from exc
        return response.content
