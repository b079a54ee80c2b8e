"""Tests for DocumentRepository against an in-memory SQLite database"""
from datetime import timedelta

import pytest

from src.domain.entities import DocumentEntity
from src.domain.enums import DocumentStatus
from src.domain.exceptions import (ConcurrencyConflictError,
                                   ResourceNotFoundException)
from src.infrastructure.persistence.repositories import DocumentRepository
from src.shared.utils.datetime import utc_now


@pytest.fixture
def document_repo(test_db):
    return DocumentRepository(test_db)


def _document(doc_id="doc-1", uid="owner-1", file_name="a.pdf", **overrides):
    values = dict(
        id=doc_id,
        uid=uid,
        file_name=file_name,
        storage_key=f"documents/{uid}/{file_name}",
        mimetype="application/pdf",
        size=10,
    )
    values.update(overrides)
    return DocumentEntity(**values)


class TestDocumentRepositoryQueries:
    """Tests for inserts and lookups."""

    @pytest.mark.asyncio
    async def test_insert_and_find(self, document_repo):
        """
        GIVEN a new document entity
        WHEN inserting it
        THEN it can be found again with version 1
        """
        # WHEN
        await document_repo.insert_document(_document(shared_to=frozenset({"u2"})))

        # THEN
        found = await document_repo.find_document("doc-1")
        assert found.file_name == "a.pdf"
        assert found.status == DocumentStatus.ACTIVE
        assert found.version == 1
        assert found.shared_to == frozenset({"u2"})
        assert found.uploaded_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_find_missing(self, document_repo):
        assert await document_repo.find_document("nope") is None

    @pytest.mark.asyncio
    async def test_find_by_ids_is_owner_scoped(self, document_repo):
        await document_repo.insert_document(_document("doc-1"))
        await document_repo.insert_document(_document("doc-2", uid="owner-2"))

        found = await document_repo.find_documents_by_ids_and_owner(["doc-1", "doc-2", "doc-3"], "owner-1")

        assert [d.id for d in found] == ["doc-1"]
        assert await document_repo.find_documents_by_ids_and_owner([], "owner-1") == []

    @pytest.mark.asyncio
    async def test_list_by_owner_newest_first(self, document_repo):
        now = utc_now()
        await document_repo.insert_document(_document("old", file_name="o.pdf", uploaded_at=now - timedelta(days=1)))
        await document_repo.insert_document(_document("new", file_name="n.pdf", uploaded_at=now))
        await document_repo.insert_document(
            _document(
                "gone",
                file_name="g.pdf",
                status=DocumentStatus.TRASHED,
                storage_key="documents/owner-1/g.pdf",
                trash_key="trash/owner-1/documents/owner-1/g.pdf",
            )
        )

        active = await document_repo.list_by_owner("owner-1", DocumentStatus.ACTIVE)
        trashed = await document_repo.list_by_owner("owner-1", DocumentStatus.TRASHED)

        assert [d.id for d in active] == ["new", "old"]
        assert [d.id for d in trashed] == ["gone"]

    @pytest.mark.asyncio
    async def test_shared_listings(self, document_repo):
        """
        GIVEN one document shared with u2 and one not shared
        WHEN listing shared documents
        THEN only the shared one appears for owner and recipient
        """
        await document_repo.insert_document(_document("doc-1", shared_to=frozenset({"u2", "u3"})))
        await document_repo.insert_document(_document("doc-2", file_name="b.pdf"))

        by_owner = await document_repo.list_shared_by_owner("owner-1")
        with_u2 = await document_repo.list_shared_with("u2")
        with_u9 = await document_repo.list_shared_with("u9")
        with_prefix = await document_repo.list_shared_with("u")

        assert [d.id for d in by_owner] == ["doc-1"]
        assert [d.id for d in with_u2] == ["doc-1"]
        assert with_u9 == []
        assert with_prefix == []


class TestDocumentRepositoryWrites:
    """Tests for conditional updates and deletes."""

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, document_repo):
        """
        GIVEN a document at version 1
        WHEN trashing it with the expected version
        THEN the patch is applied and the version becomes 2
        """
        # GIVEN
        await document_repo.insert_document(_document())

        # WHEN
        updated = await document_repo.update_document(
            "doc-1",
            "owner-1",
            {"status": DocumentStatus.TRASHED, "trash_key": "trash/owner-1/documents/owner-1/a.pdf"},
            expected_version=1,
        )

        # THEN
        assert updated.status == DocumentStatus.TRASHED
        assert updated.trash_key == "trash/owner-1/documents/owner-1/a.pdf"
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, document_repo):
        """
        GIVEN a document that was already updated once
        WHEN updating it with the old version
        THEN a conflict is raised and nothing changes
        """
        await document_repo.insert_document(_document())
        await document_repo.update_document("doc-1", "owner-1", {"file_name": "b.pdf"}, expected_version=1)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await document_repo.update_document("doc-1", "owner-1", {"file_name": "c.pdf"}, expected_version=1)

        assert exc_info.value.error_code == "conflict"
        assert (await document_repo.find_document("doc-1")).file_name == "b.pdf"

    @pytest.mark.asyncio
    async def test_update_wrong_owner_is_not_found(self, document_repo):
        await document_repo.insert_document(_document())

        with pytest.raises(ResourceNotFoundException):
            await document_repo.update_document("doc-1", "owner-2", {"file_name": "b.pdf"})

    @pytest.mark.asyncio
    async def test_update_unknown_field_is_rejected(self, document_repo):
        await document_repo.insert_document(_document())

        with pytest.raises(ValueError):
            await document_repo.update_document("doc-1", "owner-1", {"uid": "owner-2"})

    @pytest.mark.asyncio
    async def test_shared_sets_are_stored_sorted(self, document_repo):
        await document_repo.insert_document(_document())

        updated = await document_repo.update_document("doc-1", "owner-1", {"shared_to": {"u3", "u2"}})

        assert updated.shared_to == frozenset({"u2", "u3"})

    @pytest.mark.asyncio
    async def test_delete_document(self, document_repo):
        await document_repo.insert_document(_document())

        assert not await document_repo.delete_document("doc-1", "owner-2")
        assert await document_repo.delete_document("doc-1", "owner-1")
        assert await document_repo.find_document("doc-1") is None
