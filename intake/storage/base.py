from abc import ABC, abstractmethod


class BaseBlobStore(ABC):
    """Contract for the external object store holding document bytes."""

    @abstractmethod
    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        timeout: float | None = None,
    ) -> str:
        """Store bytes under a key and return the key.

        Raises:
            BlobStoreError: if the object could not be stored before the deadline.
        """

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the bytes stored under a key.

        Raises:
            BlobStoreError: if the object cannot be read.
        """
