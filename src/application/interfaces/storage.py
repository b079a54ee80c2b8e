"""
Storage service protocol for document object storage.

Provides the abstract interface for object storage backends following
Dependency Inversion Principle (DIP) - enables switching between
local filesystem, S3, MinIO, etc. without lifecycle logic changes.
"""

from datetime import timedelta
from typing import Protocol


class IStorageService(Protocol):
    """
    Protocol for object storage backends (DIP compliance).

    Every method raises a ``StorageException`` subclass on failure and
    returns normally on success. Implementations hold no per-request state.

    Implementations:
    - LocalStorageService: Filesystem storage with atomic writes
    - S3StorageService: AWS S3 or MinIO compatible storage
    """

    async def put(self, storage_key: str, data: bytes, content_type: str) -> None:
        """
        Store an object, replacing whatever lived at the key.

        Raises:
            StorageUploadError: If the write fails
        """
        ...

    async def copy(self, source_key: str, target_key: str) -> None:
        """
        Copy an object server-side. Overwrites the target.

        Raises:
            StorageCopyError: If the source is missing or the copy fails
        """
        ...

    async def remove(self, storage_keys: list[str]) -> None:
        """
        Remove objects. Missing keys are not an error.

        Raises:
            StorageDeleteError: If removal fails
        """
        ...

    async def signed_url(
        self,
        storage_key: str,
        ttl: timedelta,
        download_name: str | None = None,
    ) -> str:
        """
        Mint a time-limited read URL. Doubles as an existence probe.

        Args:
            storage_key: Object key
            ttl: URL validity duration
            download_name: Optional attachment filename

        Raises:
            StorageNotFoundError: If no object lives at the key
            StorageSignError: If the URL cannot be generated
        """
        ...
