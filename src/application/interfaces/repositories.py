"""
Metadata store interfaces (ports).

Repositories return immutable domain entities, never ORM rows, and raise
``DatabaseOperationError`` when the store fails. Each write is atomic and
durable on its own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.domain.entities import (DocumentEntity, ShareGrantEntity,
                                     UserEntity)
    from src.domain.enums import DocumentStatus


class IDocumentRepository(Protocol):
    """Protocol for document metadata (DIP)"""

    async def find_document(self, document_id: str) -> DocumentEntity | None:
        """Fetch one document regardless of owner"""
        ...

    async def find_documents_by_ids_and_owner(
        self, document_ids: Sequence[str], uid: str
    ) -> list[DocumentEntity]:
        """Fetch the subset of ids that exist and belong to ``uid``"""
        ...

    async def list_by_owner(
        self, uid: str, status: DocumentStatus | None = None
    ) -> list[DocumentEntity]:
        """Owner's documents, newest upload first"""
        ...

    async def list_shared_by_owner(self, uid: str) -> list[DocumentEntity]:
        """Owner's documents with at least one recipient, most recently updated first"""
        ...

    async def list_shared_with(self, user_id: str) -> list[DocumentEntity]:
        """Documents whose recipients include ``user_id``, most recently updated first"""
        ...

    async def insert_document(self, document: DocumentEntity) -> DocumentEntity:
        """Persist a new document row"""
        ...

    async def update_document(
        self,
        document_id: str,
        uid: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> DocumentEntity:
        """
        Apply ``patch`` to the owner's document and bump its version.

        Raises:
            ResourceNotFoundException: If no such document for ``uid``
            ConcurrencyConflictError: If ``expected_version`` is stale
            DatabaseOperationError: If the write fails
        """
        ...

    async def delete_document(self, document_id: str, uid: str) -> bool:
        """Delete the owner's document row; False if it did not exist"""
        ...


class IShareRepository(Protocol):
    """Protocol for share grants (DIP)"""

    async def insert_share(self, grant: ShareGrantEntity) -> ShareGrantEntity:
        ...

    async def update_share(self, share_id: str, patch: dict[str, Any]) -> ShareGrantEntity:
        """Update cached URL / expiry of a grant. ``share_type`` is immutable."""
        ...

    async def delete_shares(self, doc_id: str, *, include_restricted: bool = False) -> int:
        """Bulk-delete a document's grants; restricted ones are kept unless asked"""
        ...

    async def delete_share(self, share_id: str) -> bool:
        ...

    async def find_share(self, share_id: str) -> ShareGrantEntity | None:
        ...

    async def find_latest_public_share(self, doc_id: str) -> ShareGrantEntity | None:
        """Newest non-restricted grant for a document"""
        ...


class IUserRepository(Protocol):
    """Protocol for resolving share recipients (DIP)"""

    async def find_users_by_emails(self, emails: Sequence[str]) -> list[UserEntity]:
        """Case-insensitive email lookup"""
        ...
