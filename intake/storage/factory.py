from pathlib import Path

from intake.config.settings import Settings
from intake.storage.base import BaseBlobStore
from intake.storage.http import HttpBlobStore
from intake.storage.local import LocalBlobStore


class BlobStoreFactory:
    """Creates the blob store backend selected in settings."""

    BACKENDS = ("local", "http")

    @classmethod
    def create(cls, settings: Settings) -> BaseBlobStore:
        backend = settings.blob_backend.lower()
        if backend == "local":
            return LocalBlobStore(files_root=Path(settings.blob_files_root))
        if backend == "http":
            if not settings.blob_http_base_url.strip():
                raise ValueError("blob_http_base_url is required for blob_backend=http")
            return HttpBlobStore(
                base_url=settings.blob_http_base_url,
                timeout_seconds=settings.blob_upload_timeout_seconds,
            )
        raise ValueError(
            f"Unknown blob backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
