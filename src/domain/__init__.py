"""
Domain layer - Enterprise Business Rules.

This is the innermost layer containing business entities, value objects,
and domain exceptions. It has no dependencies on other layers.
"""

from src.domain.entities import DocumentEntity, ShareGrantEntity, UserEntity
from src.domain.enums import (AccessLevel, DocumentStatus, ErrorCode,
                              RevokeMode, ShareType)
from src.domain.exceptions import (ConcurrencyConflictError,
                                   DocumentStateException, DriveException,
                                   ResourceNotFoundException,
                                   ShareAccessRestrictedError,
                                   ShareLinkExpiredError, ValidationException)
from src.domain.value_objects import FileName, StorageKey

__all__ = [
    # Entities
    "DocumentEntity",
    "ShareGrantEntity",
    "UserEntity",
    # Value Objects
    "FileName",
    "StorageKey",
    # Enums
    "AccessLevel",
    "DocumentStatus",
    "ErrorCode",
    "RevokeMode",
    "ShareType",
    # Exceptions
    "DriveException",
    "ValidationException",
    "ResourceNotFoundException",
    "DocumentStateException",
    "ConcurrencyConflictError",
    "ShareAccessRestrictedError",
    "ShareLinkExpiredError",
]
