"""Domain enumerations for the Drive Docs core."""

from enum import Enum


class DocumentStatus(str, Enum):
    """Document lifecycle status enumeration"""

    ACTIVE = "active"
    TRASHED = "trashed"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [status.value for status in cls]


class ShareType(str, Enum):
    """Share grant type enumeration"""

    RESTRICTED = "restricted"
    PUBLIC_LINK = "public-link"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [share_type.value for share_type in cls]

    @classmethod
    def parse(cls, value: str | None) -> "ShareType | None":
        """Parse a share type, accepting the legacy "Anyone with link" label."""
        if not value:
            return None
        normalized = value.strip().lower()
        if normalized in ("anyone with link", "anyone-with-link", "public"):
            return cls.PUBLIC_LINK
        for share_type in cls:
            if share_type.value == normalized:
                return share_type
        return None


class AccessLevel(str, Enum):
    """Recipient access level enumeration"""

    VIEWER = "viewer"
    EDITOR = "editor"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [level.value for level in cls]


class RevokeMode(str, Enum):
    """Who is revoking a share"""

    OWNER = "owner"
    RECIPIENT = "recipient"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [mode.value for mode in cls]


class ErrorCode(str, Enum):
    """Stable machine-readable error codes"""

    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    STORAGE_ERROR = "storage_error"
    DB_ERROR = "db_error"
    PARTIAL_FAILURE = "partial_failure"
    CONFLICT = "conflict"
    ACCESS_RESTRICTED = "access_restricted"
    SHARE_EXPIRED = "share_expired"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [code.value for code in cls]
