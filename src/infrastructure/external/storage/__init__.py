"""Storage service implementations for document object storage."""

from src.infrastructure.external.storage.factory import StorageFactory
from src.infrastructure.external.storage.local_storage import \
    LocalStorageService
from src.infrastructure.external.storage.s3_storage import S3StorageService

__all__ = ["LocalStorageService", "S3StorageService", "StorageFactory"]
