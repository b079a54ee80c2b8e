"""
Infrastructure exceptions for the Drive Docs core.

This module defines infrastructure-level exceptions related to
object storage and metadata store operations. Adapters translate
driver errors (botocore, SQLAlchemy, OS) into these so the engines
only ever handle one family per collaborator.
"""

from src.domain.enums import ErrorCode
from src.domain.exceptions import DriveException


# Storage Exceptions
class StorageException(DriveException):
    """Base exception for storage operations."""

    def __init__(self, message: str, operation: str, details: dict | None = None):
        super().__init__(
            message,
            ErrorCode.STORAGE_ERROR.value,
            {"operation": operation, **(details or {})},
        )
        self.operation = operation


class StorageNotFoundError(StorageException):
    """Object not found in storage."""

    def __init__(self, storage_key: str):
        super().__init__(
            f"Object not found: {storage_key}",
            "lookup",
            {"storage_key": storage_key},
        )


class StorageUploadError(StorageException):
    """Object upload failed."""

    def __init__(self, storage_key: str, reason: str):
        super().__init__(
            f"Failed to upload object: {storage_key}",
            "put",
            {"storage_key": storage_key, "reason": reason},
        )


class StorageCopyError(StorageException):
    """Server-side copy failed."""

    def __init__(self, source_key: str, target_key: str, reason: str):
        super().__init__(
            f"Failed to copy object (from: {source_key} to: {target_key})",
            "copy",
            {"source_key": source_key, "target_key": target_key, "reason": reason},
        )


class StorageDeleteError(StorageException):
    """Object deletion failed."""

    def __init__(self, storage_keys: list[str], reason: str):
        super().__init__(
            f"Failed to remove objects: {', '.join(storage_keys)}",
            "remove",
            {"storage_keys": list(storage_keys), "reason": reason},
        )


class StorageSignError(StorageException):
    """Signed URL could not be generated."""

    def __init__(self, storage_key: str, reason: str):
        super().__init__(
            f"Unable to generate access URL for: {storage_key}",
            "signed_url",
            {"storage_key": storage_key, "reason": reason},
        )


class StoragePermissionError(StorageException):
    """Key escapes the storage root or is otherwise not permitted."""

    def __init__(self, storage_key: str, operation: str):
        super().__init__(
            f"Permission denied for {operation} on {storage_key}",
            operation,
            {"storage_key": storage_key},
        )


class StorageTimeoutError(StorageException):
    """Storage call exceeded the adapter timeout."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"Storage {operation} timed out after {timeout}s",
            operation,
            {"timeout": timeout},
        )


# Metadata store exceptions
class DatabaseOperationError(DriveException):
    """Metadata store read/write failed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Database {operation} failed: {reason}",
            ErrorCode.DB_ERROR.value,
            {"operation": operation, "reason": reason},
        )
        self.operation = operation


class DatabaseTimeoutError(DatabaseOperationError):
    """Metadata store call exceeded the adapter timeout."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(operation, f"timed out after {timeout}s")
