from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from sqlalchemy import String, cast, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import DocumentEntity
from src.domain.enums import DocumentStatus
from src.domain.exceptions import (ConcurrencyConflictError,
                                   ResourceNotFoundException)
from src.infrastructure.persistence.models.document import Document
from src.infrastructure.persistence.repositories.base import BaseRepository
from src.shared.utils.datetime import ensure_utc, utc_now

# Columns a lifecycle or sharing patch may touch
PATCHABLE_FIELDS = frozenset(
    {"file_name", "storage_key", "status", "trash_key", "shared_to", "shared_from"}
)


class DocumentRepository(BaseRepository[Document]):
    """Repository for Document metadata with optimistic version checks."""

    def __init__(self, db: AsyncSession, *, autocommit: bool = True):
        super().__init__(db, Document, autocommit=autocommit)

    @staticmethod
    def to_entity(row: Document) -> DocumentEntity:
        return DocumentEntity(
            id=row.id,
            uid=row.uid,
            file_name=row.file_name,
            storage_key=row.storage_key,
            status=DocumentStatus(row.status),
            trash_key=row.trash_key,
            mimetype=row.mimetype,
            size=row.size or 0,
            shared_to=frozenset(row.shared_to or ()),
            shared_from=frozenset(row.shared_from or ()),
            version=row.version,
            uploaded_at=ensure_utc(row.uploaded_at),
            updated_at=ensure_utc(row.updated_at),
        )

    @staticmethod
    def _to_columns(patch: dict[str, Any]) -> dict[str, Any]:
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported document fields: {sorted(unknown)}")
        values: dict[str, Any] = {}
        for key, value in patch.items():
            if key in ("shared_to", "shared_from"):
                value = sorted(set(value or ()))
            elif key == "status":
                value = DocumentStatus(value).value
            values[key] = value
        return values

    async def _get_row(self, document_id: str, uid: str | None = None) -> Document | None:
        query = select(Document).where(Document.id == document_id)
        if uid is not None:
            query = query.where(Document.uid == uid)
        result = await self._execute(
            "find_document", query.execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_document(self, document_id: str) -> DocumentEntity | None:
        row = await self._get_row(document_id)
        return self.to_entity(row) if row else None

    async def find_documents_by_ids_and_owner(
        self, document_ids: Sequence[str], uid: str
    ) -> list[DocumentEntity]:
        if not document_ids:
            return []
        result = await self._execute(
            "find_documents_by_ids_and_owner",
            select(Document)
            .where(Document.id.in_(list(document_ids)), Document.uid == uid)
            .execution_options(populate_existing=True),
        )
        return [self.to_entity(row) for row in result.scalars().all()]

    async def list_by_owner(
        self, uid: str, status: DocumentStatus | None = None
    ) -> list[DocumentEntity]:
        query = select(Document).where(Document.uid == uid)
        if status is not None:
            query = query.where(Document.status == status.value)
        query = query.order_by(Document.uploaded_at.desc())
        result = await self._execute("list_by_owner", query)
        return [self.to_entity(row) for row in result.scalars().all()]

    async def list_shared_by_owner(self, uid: str) -> list[DocumentEntity]:
        result = await self._execute(
            "list_shared_by_owner",
            select(Document)
            .where(Document.uid == uid, func.json_array_length(Document.shared_to) > 0)
            .order_by(Document.updated_at.desc()),
        )
        return [self.to_entity(row) for row in result.scalars().all()]

    async def list_shared_with(self, user_id: str) -> list[DocumentEntity]:
        result = await self._execute(
            "list_shared_with",
            select(Document)
            .where(func.json_array_length(Document.shared_to) > 0)
            .where(cast(Document.shared_to, String).contains(json.dumps(user_id), autoescape=True))
            .order_by(Document.updated_at.desc()),
        )
        # The text match narrows the scan; JSON containment differs per dialect, so
        # exact membership is checked here
        return [
            self.to_entity(row)
            for row in result.scalars().all()
            if user_id in (row.shared_to or ())
        ]

    async def insert_document(self, document: DocumentEntity) -> DocumentEntity:
        row = Document(
            id=document.id,
            uid=document.uid,
            file_name=document.file_name,
            storage_key=document.storage_key,
            status=document.status.value,
            trash_key=document.trash_key,
            mimetype=document.mimetype,
            size=document.size,
            shared_to=sorted(document.shared_to),
            shared_from=sorted(document.shared_from),
            uploaded_at=document.uploaded_at or utc_now(),
            updated_at=document.updated_at or utc_now(),
        )
        return self.to_entity(await self.create(row))

    async def update_document(
        self,
        document_id: str,
        uid: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> DocumentEntity:
        """
        Conditional update: ``WHERE id AND uid [AND version]``.

        Zero matched rows on an existing document means another writer got
        there first.
        """
        conditions = [Document.id == document_id, Document.uid == uid]
        if expected_version is not None:
            conditions.append(Document.version == expected_version)

        statement = (
            update(Document)
            .where(*conditions)
            .values(
                **self._to_columns(patch),
                version=Document.version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._write("update_document", statement)

        if result.rowcount == 0:
            if await self._get_row(document_id, uid) is None:
                raise ResourceNotFoundException("Document", document_id)
            raise ConcurrencyConflictError(document_id, expected_version)

        row = await self._get_row(document_id, uid)
        if row is None:
            raise ResourceNotFoundException("Document", document_id)
        return self.to_entity(row)

    async def delete_document(self, document_id: str, uid: str) -> bool:
        result = await self._write(
            "delete_document",
            delete(Document)
            .where(Document.id == document_id, Document.uid == uid)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount > 0
