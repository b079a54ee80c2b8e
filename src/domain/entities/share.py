"""ShareGrant and user reference domain entities."""

from dataclasses import dataclass
from datetime import UTC, datetime

from src.domain.enums import ShareType


@dataclass(frozen=True)
class ShareGrantEntity:
    """
    A persisted authorization to reach a document.

    Public-link grants cache a signed URL with an absolute expiry. Restricted
    grants never carry a URL.
    """

    id: str
    doc_id: str
    granting_uid: str
    share_type: ShareType
    signed_url: str | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_restricted(self) -> bool:
        return self.share_type == ShareType.RESTRICTED

    def is_expired(self, now: datetime | None = None) -> bool:
        """True when the cached URL or its expiry is missing, or ``now >= expires_at``."""
        if not self.signed_url or self.expires_at is None:
            return True
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return now >= expires_at


@dataclass(frozen=True)
class UserEntity:
    """Minimal user reference used to resolve share recipients."""

    id: str
    email: str
