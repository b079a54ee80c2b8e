"""
Document domain entity.

This represents the business concept of a stored document, independent of
how it's stored in the database. Repositories return immutable snapshots;
the lifecycle engine never mutates one in place.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.domain.enums import DocumentStatus


@dataclass(frozen=True)
class DocumentEntity:
    """
    Domain entity for Document (snapshot of one metadata row)
    """

    id: str
    uid: str
    file_name: str
    storage_key: str | None
    status: DocumentStatus = DocumentStatus.ACTIVE
    trash_key: str | None = None
    mimetype: str | None = None
    size: int = 0
    shared_to: frozenset[str] = field(default_factory=frozenset)
    shared_from: frozenset[str] = field(default_factory=frozenset)
    version: int = 1
    uploaded_at: datetime | None = None
    updated_at: datetime | None = None

    def validate(self) -> bool:
        """Validate the status/trash-key invariant"""
        if not self.id:
            raise ValueError("Document ID is required")
        if not self.uid:
            raise ValueError("Document must have an owner")
        if self.status == DocumentStatus.TRASHED and not self.trash_key:
            raise ValueError("Trashed document must have a trash key")
        if self.status == DocumentStatus.ACTIVE and self.trash_key:
            raise ValueError("Active document must not have a trash key")
        return True

    @property
    def is_trashed(self) -> bool:
        return self.status == DocumentStatus.TRASHED

    def is_owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and self.uid == user_id

    def is_shared_with(self, user_id: str | None) -> bool:
        return user_id is not None and user_id in self.shared_to

    def can_be_viewed_by(self, user_id: str | None) -> bool:
        """Owner or named recipient."""
        return self.is_owned_by(user_id) or self.is_shared_with(user_id)
