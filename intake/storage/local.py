from pathlib import Path

from intake.storage.base import BaseBlobStore
from intake.workflow.exceptions import BlobStoreError


class LocalBlobStore(BaseBlobStore):
    """Stores blobs as files under a root directory, one file per key."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        timeout: float | None = None,
    ) -> str:
        path = self._resolve_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"Failed to write {key}: {exc}") from exc
        return key

    def get(self, key: str) -> bytes:
        path = self._resolve_path(key)
        if not path.exists():
            raise BlobStoreError(f"Blob not found: {key}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise BlobStoreError(f"Failed to read {key}: {exc}") from exc

    def _resolve_path(self, key: str) -> Path:
        root = self._files_root.resolve()
        path = (root / key).resolve()
        if not path.is_relative_to(root):
            raise BlobStoreError(f"Key escapes the blob root: {key}")
        return path
