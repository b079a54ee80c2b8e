"""
Domain exceptions for the Drive Docs core.

This module defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns.

Every exception carries a stable machine-readable ``error_code`` (one of
``ErrorCode``), a human-readable message and a details dict. Details are meant
for operator diagnosis and are not a stable API contract.
"""

from typing import Any

from src.domain.enums import ErrorCode


class DriveException(Exception):
    """
    Base exception for all Drive Docs errors.

    All custom exceptions should inherit from this class to allow
    for consistent error handling and logging.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for API responses
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry the same request unchanged."""
        return False

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(DriveException):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, ErrorCode.VALIDATION_ERROR.value, details)


class ResourceNotFoundException(DriveException):
    """
    Raised when a requested resource is not found.

    Also raised when the caller is not allowed to see the resource, so that
    "exists but forbidden" cannot be told apart from "does not exist".
    """

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            ErrorCode.NOT_FOUND.value,
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class DocumentStateException(DriveException):
    """Raised when a transition is requested from the wrong lifecycle state."""

    def __init__(self, document_id: str, status: str, message: str):
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR.value,
            {"document_id": document_id, "status": status},
        )


class ConcurrencyConflictError(DriveException):
    """
    Raised when a metadata write lost an optimistic-version race.

    The record changed between read and write; re-reading and retrying is safe.
    """

    def __init__(self, document_id: str, expected_version: int | None):
        super().__init__(
            f"Document {document_id} was modified concurrently",
            ErrorCode.CONFLICT.value,
            {"document_id": document_id, "expected_version": expected_version},
        )

    @property
    def retryable(self) -> bool:
        return True


class ShareAccessRestrictedError(DriveException):
    """Raised for restricted grants; the request/approval flow does not exist yet."""

    def __init__(self, share_id: str):
        super().__init__(
            "Access restricted, request required",
            ErrorCode.ACCESS_RESTRICTED.value,
            {"share_id": share_id},
        )


class ShareLinkExpiredError(DriveException):
    """Raised when a cached share URL is missing or past its expiry."""

    def __init__(self, share_id: str, expires_at: str | None = None):
        super().__init__(
            "Share link expired. Ask owner to refresh.",
            ErrorCode.SHARE_EXPIRED.value,
            {"share_id": share_id, "expires_at": expires_at},
        )
