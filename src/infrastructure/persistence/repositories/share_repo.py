from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import ShareGrantEntity
from src.domain.enums import ShareType
from src.domain.exceptions import ResourceNotFoundException
from src.infrastructure.persistence.models.document_share import DocumentShare
from src.infrastructure.persistence.repositories.base import BaseRepository
from src.shared.utils.datetime import ensure_utc, utc_now

# share_type is never rewritten; revoke and re-share instead
UPDATABLE_FIELDS = frozenset({"signed_url", "expires_at"})


class ShareRepository(BaseRepository[DocumentShare]):
    """Repository for document share grants."""

    def __init__(self, db: AsyncSession, *, autocommit: bool = True):
        super().__init__(db, DocumentShare, autocommit=autocommit)

    @staticmethod
    def to_entity(row: DocumentShare) -> ShareGrantEntity:
        return ShareGrantEntity(
            id=row.id,
            doc_id=row.doc_id,
            granting_uid=row.granting_uid,
            share_type=ShareType(row.share_type),
            signed_url=row.signed_url,
            expires_at=ensure_utc(row.expires_at),
            created_at=ensure_utc(row.created_at),
        )

    async def insert_share(self, grant: ShareGrantEntity) -> ShareGrantEntity:
        row = DocumentShare(
            id=grant.id,
            doc_id=grant.doc_id,
            granting_uid=grant.granting_uid,
            share_type=grant.share_type.value,
            signed_url=grant.signed_url,
            expires_at=grant.expires_at,
            created_at=grant.created_at or utc_now(),
        )
        return self.to_entity(await self.create(row))

    async def update_share(self, share_id: str, patch: dict[str, Any]) -> ShareGrantEntity:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported share fields: {sorted(unknown)}")

        result = await self._write(
            "update_share",
            update(DocumentShare)
            .where(DocumentShare.id == share_id)
            .values(**patch)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount == 0:
            raise ResourceNotFoundException("Share", share_id)

        share = await self.find_share(share_id)
        if share is None:
            raise ResourceNotFoundException("Share", share_id)
        return share

    async def delete_shares(self, doc_id: str, *, include_restricted: bool = False) -> int:
        statement = delete(DocumentShare).where(DocumentShare.doc_id == doc_id)
        if not include_restricted:
            statement = statement.where(DocumentShare.share_type != ShareType.RESTRICTED.value)
        result = await self._write(
            "delete_shares", statement.execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_share(self, share_id: str) -> bool:
        result = await self._write(
            "delete_share",
            delete(DocumentShare)
            .where(DocumentShare.id == share_id)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount > 0

    async def find_share(self, share_id: str) -> ShareGrantEntity | None:
        result = await self._execute(
            "find_share",
            select(DocumentShare)
            .where(DocumentShare.id == share_id)
            .execution_options(populate_existing=True),
        )
        row = result.scalar_one_or_none()
        return self.to_entity(row) if row else None

    async def find_latest_public_share(self, doc_id: str) -> ShareGrantEntity | None:
        result = await self._execute(
            "find_latest_public_share",
            select(DocumentShare)
            .where(
                DocumentShare.doc_id == doc_id,
                DocumentShare.share_type != ShareType.RESTRICTED.value,
            )
            .order_by(DocumentShare.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True),
        )
        row = result.scalar_one_or_none()
        return self.to_entity(row) if row else None
