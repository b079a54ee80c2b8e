"""Unit tests for ShareAuthorizationEngine"""
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from freezegun import freeze_time

from src.domain.entities import ShareGrantEntity
from src.domain.enums import DocumentStatus, RevokeMode, ShareType
from src.domain.exceptions import (ConcurrencyConflictError,
                                   DocumentStateException,
                                   ResourceNotFoundException,
                                   ShareAccessRestrictedError,
                                   ShareLinkExpiredError, ValidationException)
from src.infrastructure.exceptions import (DatabaseOperationError,
                                           StorageSignError)


class TestCreateShare:
    """Tests for creating share grants."""

    @pytest.mark.asyncio
    async def test_public_link_caches_24h_url(self, sharing, shares, make_document):
        """
        GIVEN an owned active document
        WHEN creating a public-link share
        THEN the grant caches a signed URL expiring in 24 hours
        """
        # GIVEN
        make_document()

        # WHEN
        with freeze_time("2026-03-01 12:00:00", real_asyncio=True):
            created = await sharing.create_share("owner-1", "doc-1", ShareType.PUBLIC_LINK)

        # THEN
        grant = shares.rows[created.share_id]
        assert grant.signed_url == "https://storage.test/documents/owner-1/report.pdf?ttl=86400"
        assert grant.expires_at == datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
        assert created.share_link == f"/api/drive/docs/share/{created.share_id}"
        assert len(created.share_id) >= 32

    @pytest.mark.asyncio
    async def test_restricted_share_has_no_url(self, sharing, shares, storage, make_document):
        """
        GIVEN an owned active document
        WHEN creating a restricted share
        THEN no URL is minted
        """
        make_document()

        created = await sharing.create_share("owner-1", "doc-1", "restricted")

        assert created.signed_url is None
        assert shares.rows[created.share_id].expires_at is None
        assert not any(call[0] == "signed_url" for call in storage.calls)

    @pytest.mark.asyncio
    async def test_anyone_with_link_alias(self, sharing, make_document):
        make_document()

        created = await sharing.create_share("owner-1", "doc-1", "Anyone with link")

        assert created.share_type == ShareType.PUBLIC_LINK

    @pytest.mark.asyncio
    async def test_invalid_share_type(self, sharing, make_document):
        make_document()

        with pytest.raises(ValidationException):
            await sharing.create_share("owner-1", "doc-1", "everyone")

    @pytest.mark.asyncio
    async def test_non_owner_gets_not_found(self, sharing, make_document):
        """
        GIVEN a document shared with user-2
        WHEN user-2 tries to create a share
        THEN the denial is shaped like not found
        """
        make_document(shared_to=frozenset({"user-2"}))

        with pytest.raises(ResourceNotFoundException):
            await sharing.create_share("user-2", "doc-1", ShareType.PUBLIC_LINK)

    @pytest.mark.asyncio
    async def test_trashed_document_cannot_be_shared(self, sharing, make_document):
        make_document(
            status=DocumentStatus.TRASHED,
            storage_key="documents/owner-1/report.pdf",
            trash_key="trash/owner-1/documents/owner-1/report.pdf",
        )

        with pytest.raises(DocumentStateException):
            await sharing.create_share("owner-1", "doc-1", ShareType.PUBLIC_LINK)

    @pytest.mark.asyncio
    async def test_sign_failure_removes_grant(self, sharing, storage, shares, make_document):
        """
        GIVEN a storage backend that cannot sign URLs
        WHEN creating a public-link share
        THEN the error propagates and no grant is left behind
        """
        make_document()
        storage.fail("signed_url", StorageSignError("documents/owner-1/report.pdf", "no creds"))

        with pytest.raises(StorageSignError):
            await sharing.create_share("owner-1", "doc-1", ShareType.PUBLIC_LINK)

        assert shares.rows == {}


class TestRecipients:
    """Tests for adding recipients and the share pipeline."""

    @pytest.mark.asyncio
    async def test_add_recipients_resolves_and_reports_unresolved(self, sharing, documents, make_document):
        """
        GIVEN a messy email list with duplicates and an unknown address
        WHEN adding recipients
        THEN known users are unioned into shared_to and the unknown email is reported
        """
        # GIVEN
        make_document(shared_to=frozenset({"user-3"}))

        # WHEN
        added = await sharing.add_recipients(
            "owner-1", "doc-1", "alice@example.com; BOB@example.com,  ghost@example.com alice@example.com"
        )

        # THEN
        assert added.added_ids == ["user-2"]
        assert added.unresolved_emails == ["ghost@example.com"]
        assert documents.rows["doc-1"].shared_to == {"user-2", "user-3"}

    @pytest.mark.asyncio
    async def test_add_recipients_requires_emails(self, sharing, make_document):
        make_document()

        with pytest.raises(ValidationException):
            await sharing.add_recipients("owner-1", "doc-1", " ,; ")

    @pytest.mark.asyncio
    async def test_add_recipients_invalid_access_level(self, sharing, make_document):
        make_document()

        with pytest.raises(ValidationException):
            await sharing.add_recipients("owner-1", "doc-1", "bob@example.com", "admin")

    @pytest.mark.asyncio
    async def test_add_recipients_conflict_is_raised(self, sharing, documents, make_document):
        """
        GIVEN a metadata store that reports a concurrent modification
        WHEN adding recipients
        THEN the retryable conflict propagates
        """
        make_document()
        documents.fail("update_document", ConcurrencyConflictError("doc-1", 1))

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await sharing.add_recipients("owner-1", "doc-1", "bob@example.com")

        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_share_document_pipeline(self, sharing, documents, make_document):
        """
        GIVEN an owned document
        WHEN sharing it by link with two recipients
        THEN the grant, the recipients and the provenance are all recorded
        """
        make_document()

        result = await sharing.share_document(
            "owner-1", "doc-1", "public-link", emails=["alice@example.com", "bob@example.com"]
        )

        row = documents.rows["doc-1"]
        assert row.shared_to == {"user-2", "user-3"}
        assert row.shared_from == {"owner-1"}
        assert result.provenance_recorded
        assert result.to_dict()["share_link"].endswith(result.share.share_id)


class TestAccess:
    """Tests for viewer resolution and public grant access."""

    @pytest.mark.asyncio
    async def test_resolve_viewer_owner_and_recipient(self, sharing, make_document):
        make_document(shared_to=frozenset({"user-2"}))

        assert (await sharing.resolve_viewer("owner-1", "doc-1")).id == "doc-1"
        assert (await sharing.resolve_viewer("user-2", "doc-1")).id == "doc-1"

    @pytest.mark.asyncio
    async def test_resolve_viewer_stranger_is_not_found(self, sharing, make_document):
        """
        GIVEN a document not shared with user-3
        WHEN user-3 resolves it
        THEN the error is the same as for a missing document
        """
        make_document(shared_to=frozenset({"user-2"}))

        with pytest.raises(ResourceNotFoundException) as denied:
            await sharing.resolve_viewer("user-3", "doc-1")
        with pytest.raises(ResourceNotFoundException) as missing:
            await sharing.resolve_viewer("user-3", "doc-404")

        assert denied.value.error_code == missing.value.error_code

    @pytest.mark.asyncio
    async def test_public_grant_returns_cached_url(self, sharing, storage, make_document, public_grant):
        make_document()
        public_grant()
        storage.calls.clear()

        access = await sharing.access_public_grant("share-1")

        assert access.signed_url == "https://storage.test/cached"
        assert storage.calls == []

    @pytest.mark.asyncio
    async def test_restricted_grant_is_always_denied(self, sharing, shares, make_document):
        """
        GIVEN a restricted grant
        WHEN anyone accesses it
        THEN access is denied as restricted
        """
        make_document()
        shares.rows["share-r"] = ShareGrantEntity(
            id="share-r", doc_id="doc-1", granting_uid="owner-1", share_type=ShareType.RESTRICTED
        )

        with pytest.raises(ShareAccessRestrictedError) as exc_info:
            await sharing.access_public_grant("share-r")

        assert exc_info.value.error_code == "access_restricted"

    @pytest.mark.asyncio
    async def test_restricted_grant_on_trashed_document_is_denied_as_restricted(
        self, sharing, shares, make_document
    ):
        """
        GIVEN a restricted grant whose document sits in the trash
        WHEN anyone accesses it
        THEN access is denied as restricted rather than not found
        """
        make_document(status=DocumentStatus.TRASHED)
        shares.rows["share-r"] = ShareGrantEntity(
            id="share-r", doc_id="doc-1", granting_uid="owner-1", share_type=ShareType.RESTRICTED
        )

        with pytest.raises(ShareAccessRestrictedError):
            await sharing.access_public_grant("share-r")

    @pytest.mark.asyncio
    async def test_restricted_grant_on_missing_document_is_denied_as_restricted(self, sharing, shares):
        shares.rows["share-r"] = ShareGrantEntity(
            id="share-r", doc_id="gone", granting_uid="owner-1", share_type=ShareType.RESTRICTED
        )

        with pytest.raises(ShareAccessRestrictedError):
            await sharing.access_public_grant("share-r")

    @pytest.mark.asyncio
    async def test_public_grant_without_expiry_is_expired(self, sharing, shares, make_document, public_grant):
        """
        GIVEN a public grant with a cached URL but no recorded expiry
        WHEN it is accessed
        THEN it is treated as expired
        """
        make_document()
        grant = public_grant()
        shares.rows[grant.id] = replace(grant, expires_at=None)

        with pytest.raises(ShareLinkExpiredError):
            await sharing.access_public_grant("share-1")

    @pytest.mark.asyncio
    async def test_expired_public_grant_is_not_reminted(self, sharing, storage, make_document):
        """
        GIVEN a public grant created at noon
        WHEN it is accessed 25 hours later
        THEN the expired-link signal is raised and no new URL is minted
        """
        # GIVEN
        make_document()
        with freeze_time("2026-03-01 12:00:00", real_asyncio=True):
            created = await sharing.create_share("owner-1", "doc-1", ShareType.PUBLIC_LINK)
        storage.calls.clear()

        # WHEN / THEN
        with freeze_time("2026-03-02 13:00:00", real_asyncio=True):
            with pytest.raises(ShareLinkExpiredError) as exc_info:
                await sharing.access_public_grant(created.share_id)

        assert exc_info.value.error_code == "share_expired"
        assert storage.calls == []

    @pytest.mark.asyncio
    async def test_public_grant_valid_until_expiry(self, sharing, make_document):
        make_document()
        with freeze_time("2026-03-01 12:00:00", real_asyncio=True):
            created = await sharing.create_share("owner-1", "doc-1", ShareType.PUBLIC_LINK)

        with freeze_time("2026-03-02 11:59:59", real_asyncio=True):
            access = await sharing.access_public_grant(created.share_id)

        assert access.document_id == "doc-1"

    @pytest.mark.asyncio
    async def test_unknown_grant_is_not_found(self, sharing):
        with pytest.raises(ResourceNotFoundException):
            await sharing.access_public_grant("nope")

    @pytest.mark.asyncio
    async def test_refresh_share_link_extends_expiry(self, sharing, make_document):
        """
        GIVEN an expired public grant
        WHEN the owner refreshes it
        THEN it is accessible again
        """
        make_document()
        with freeze_time("2026-03-01 12:00:00", real_asyncio=True):
            created = await sharing.create_share("owner-1", "doc-1", ShareType.PUBLIC_LINK)

        with freeze_time("2026-03-05 12:00:00", real_asyncio=True):
            refreshed = await sharing.refresh_share_link("owner-1", created.share_id)
            access = await sharing.access_public_grant(created.share_id)

        assert refreshed.expires_at == datetime(2026, 3, 6, 12, 0, tzinfo=UTC)
        assert access.expires_at == refreshed.expires_at

    @pytest.mark.asyncio
    async def test_open_via_stored_share(self, sharing, make_document, public_grant):
        make_document(shared_to=frozenset({"user-2"}))
        public_grant(expires_in=timedelta(hours=1))

        opened = await sharing.open_via_stored_share("user-2", "doc-1")

        assert opened.raw_url == "https://storage.test/cached"
        assert opened.viewer.value == "direct"

    @pytest.mark.asyncio
    async def test_open_via_stored_share_expired(self, sharing, make_document, public_grant):
        make_document()
        public_grant(expires_in=timedelta(hours=-1))

        with pytest.raises(ShareLinkExpiredError):
            await sharing.open_via_stored_share("owner-1", "doc-1")

    @pytest.mark.asyncio
    async def test_open_via_stored_share_without_grant(self, sharing, make_document):
        make_document()

        with pytest.raises(ResourceNotFoundException):
            await sharing.open_via_stored_share("owner-1", "doc-1")


class TestRevoke:
    """Tests for revoking shares."""

    @pytest.mark.asyncio
    async def test_owner_revoke_clears_recipients_and_public_grants(
        self, sharing, documents, shares, make_document, public_grant
    ):
        """
        GIVEN a document with recipients, a public grant and a restricted grant
        WHEN the owner revokes
        THEN recipients are cleared and only the restricted grant remains
        """
        # GIVEN
        make_document(shared_to=frozenset({"user-2", "user-3"}))
        public_grant()
        shares.rows["share-r"] = ShareGrantEntity(
            id="share-r", doc_id="doc-1", granting_uid="owner-1", share_type=ShareType.RESTRICTED
        )

        # WHEN
        result = await sharing.revoke_share("owner-1", "doc-1", "owner")

        # THEN
        assert result.removed_ids == ["user-2", "user-3"]
        assert result.shared_to == []
        assert result.cleared_public_shares is True
        assert documents.rows["doc-1"].shared_to == frozenset()
        assert set(shares.rows) == {"share-r"}

    @pytest.mark.asyncio
    async def test_owner_revoke_subset(self, sharing, documents, make_document):
        make_document(shared_to=frozenset({"user-2", "user-3"}))

        result = await sharing.revoke_share("owner-1", "doc-1", RevokeMode.OWNER, recipients="user-2")

        assert result.removed_ids == ["user-2"]
        assert documents.rows["doc-1"].shared_to == {"user-3"}

    @pytest.mark.asyncio
    async def test_owner_revoke_grant_cleanup_failure_leaves_share_intact(
        self, sharing, documents, shares, make_document, public_grant
    ):
        """
        GIVEN a shared document with a public link
        WHEN deleting its public grants fails during an owner revoke
        THEN the error surfaces and neither recipients nor the link are touched
        """
        make_document(shared_to=frozenset({"user-2"}))
        public_grant()
        shares.fail("delete_shares", DatabaseOperationError("delete_shares", "down"))

        with pytest.raises(DatabaseOperationError) as exc_info:
            await sharing.revoke_share("owner-1", "doc-1")

        assert exc_info.value.error_code == "db_error"
        assert documents.rows["doc-1"].shared_to == {"user-2"}
        assert "share-1" in shares.rows

    @pytest.mark.asyncio
    async def test_owner_mode_by_non_owner_is_not_found(self, sharing, make_document):
        make_document(shared_to=frozenset({"user-2"}))

        with pytest.raises(ResourceNotFoundException):
            await sharing.revoke_share("user-2", "doc-1", "owner")

    @pytest.mark.asyncio
    async def test_recipient_revoke_is_idempotent(self, sharing, documents, make_document):
        """
        GIVEN a recipient of a document
        WHEN they leave the share twice
        THEN the second call reports already_removed
        """
        make_document(shared_to=frozenset({"user-2", "user-3"}))

        first = await sharing.revoke_share("user-2", "doc-1")
        second = await sharing.revoke_share("user-2", "doc-1")

        assert first.mode == RevokeMode.RECIPIENT
        assert first.removed_ids == ["user-2"]
        assert first.shared_to is None
        assert second.already_removed
        assert documents.rows["doc-1"].shared_to == {"user-3"}

    @pytest.mark.asyncio
    async def test_invalid_mode(self, sharing, make_document):
        make_document()

        with pytest.raises(ValidationException):
            await sharing.revoke_share("owner-1", "doc-1", "admin")


class TestSharedListings:
    @pytest.mark.asyncio
    async def test_listings(self, sharing, make_document):
        make_document("doc-1", shared_to=frozenset({"user-2"}))
        make_document("doc-2", file_name="private.pdf")

        shared_by_me = await sharing.list_shared_by_owner("owner-1")
        shared_with_me = await sharing.list_shared_with("user-2")

        assert [d.id for d in shared_by_me] == ["doc-1"]
        assert [d.id for d in shared_with_me] == ["doc-1"]
