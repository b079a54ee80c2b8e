"""
Share authorization engine.

Three kinds of caller can reach a document:
- the owner (``uid``)
- named recipients (``shared_to``)
- anonymous holders of a public-link grant id

Public-link grants cache a 24h signed URL minted once at creation (or on an
explicit refresh). Owner and recipient opens go through the document service
and mint a fresh short-lived URL every time. Restricted grants never carry a
URL and are always denied.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from src.application.services.timeouts import metadata_call, storage_call
from src.domain.entities import DocumentEntity, ShareGrantEntity
from src.domain.enums import AccessLevel, RevokeMode, ShareType
from src.domain.exceptions import (DocumentStateException, DriveException,
                                   ResourceNotFoundException,
                                   ShareAccessRestrictedError,
                                   ShareLinkExpiredError, ValidationException)
from src.shared.telemetry.logging import get_logger
from src.shared.telemetry.tracing import add_span_attributes, traced
from src.shared.utils.datetime import utc_now
from src.shared.utils.generators import generate_share_token
from src.shared.utils.sanitization import normalize_emails, parse_id_list

if TYPE_CHECKING:
    from src.application.interfaces.repositories import (IDocumentRepository,
                                                         IShareRepository,
                                                         IUserRepository)
    from src.application.interfaces.storage import IStorageService
    from src.application.services.viewer_service import (OpenedDocument,
                                                         ViewerService)
    from src.infrastructure.config.settings import Settings

logger = get_logger(__name__)


@dataclass
class ShareCreated:
    """A persisted grant and the link that reaches it"""

    share_id: str
    share_link: str
    share_type: ShareType
    signed_url: str | None = None
    expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "share_id": self.share_id,
            "share_link": self.share_link,
            "share_type": self.share_type.value,
            "signed_url": self.signed_url,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass
class RecipientsAdded:
    added_ids: list[str]
    unresolved_emails: list[str]
    access_level: AccessLevel
    document: DocumentEntity

    def to_dict(self) -> dict[str, Any]:
        return {
            "added_ids": list(self.added_ids),
            "unresolved_emails": list(self.unresolved_emails),
            "access_level": self.access_level.value,
            "shared_to": sorted(self.document.shared_to),
        }


@dataclass
class SharePipelineResult:
    share: ShareCreated
    recipients: RecipientsAdded | None = None
    provenance_recorded: bool = False

    def to_dict(self) -> dict[str, Any]:
        result = self.share.to_dict()
        if self.recipients is not None:
            result.update(self.recipients.to_dict())
        result["provenance_recorded"] = self.provenance_recorded
        return result


@dataclass
class PublicAccess:
    share_id: str
    document_id: str
    file_name: str
    signed_url: str
    expires_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "share_id": self.share_id,
            "document_id": self.document_id,
            "file_name": self.file_name,
            "signed_url": self.signed_url,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass
class RevokeResult:
    """
    Outcome of a revoke.

    ``shared_to`` is only filled for owner revokes; recipients never see the
    other recipients.
    """

    document_id: str
    mode: RevokeMode
    removed_ids: list[str] = field(default_factory=list)
    shared_to: list[str] | None = None
    cleared_public_shares: bool | None = None
    already_removed: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "document_id": self.document_id,
            "mode": self.mode.value,
            "removed_ids": list(self.removed_ids),
            "already_removed": self.already_removed,
        }
        if self.shared_to is not None:
            result["shared_to"] = list(self.shared_to)
        if self.cleared_public_shares is not None:
            result["cleared_public_shares"] = self.cleared_public_shares
        return result


class ShareAuthorizationEngine:
    """
    Share grants, viewer resolution and signed-URL caching.

    Every failure raises a ``DriveException``. Documents the caller may not
    see raise ``ResourceNotFoundException`` exactly as missing ones do.
    """

    def __init__(
        self,
        storage: IStorageService,
        document_repo: IDocumentRepository,
        share_repo: IShareRepository,
        user_repo: IUserRepository,
        viewers: ViewerService,
        settings: Settings,
    ) -> None:
        self.storage = storage
        self.documents = document_repo
        self.shares = share_repo
        self.users = user_repo
        self.viewers = viewers
        self.share_ttl_seconds = settings.share_url_ttl_seconds
        self.share_link_base_path = settings.share_link_base_path.rstrip("/")
        self.timeout = settings.adapter_timeout_seconds

    def share_link(self, share_id: str) -> str:
        return f"{self.share_link_base_path}/{share_id}"

    # ---- lookups -------------------------------------------------------

    async def _find_document(self, document_id: str) -> DocumentEntity | None:
        return await metadata_call(
            self.documents.find_document(document_id), "find_document", self.timeout
        )

    async def _find_share(self, share_id: str) -> ShareGrantEntity | None:
        return await metadata_call(self.shares.find_share(share_id), "find_share", self.timeout)

    async def resolve_viewer(self, requester_id: str | None, document_id: str) -> DocumentEntity:
        """
        Return the document if the requester is its owner or a recipient.

        Raises:
            ResourceNotFoundException: If missing or not visible to the requester
        """
        document = await self._find_document(document_id)
        if document is None or not document.can_be_viewed_by(requester_id):
            raise ResourceNotFoundException("Document", document_id)
        return document

    async def _require_owner(self, owner_id: str, document_id: str) -> DocumentEntity:
        document = await self._find_document(document_id)
        if document is None or not document.is_owned_by(owner_id):
            raise ResourceNotFoundException("Document", document_id)
        return document

    @staticmethod
    def _require_active(document: DocumentEntity) -> None:
        if document.is_trashed:
            raise DocumentStateException(
                document.id, document.status.value, "Trashed documents cannot be shared"
            )

    async def _mint(self, document: DocumentEntity) -> tuple[str, datetime]:
        if not document.storage_key:
            raise ResourceNotFoundException("Document object", document.id)
        expires_at = utc_now() + timedelta(seconds=self.share_ttl_seconds)
        url = await storage_call(
            self.storage.signed_url(document.storage_key, timedelta(seconds=self.share_ttl_seconds)),
            "signed_url",
            self.timeout,
        )
        return url, expires_at

    # ---- grants --------------------------------------------------------

    @traced("share.create")
    async def create_share(
        self, owner_id: str, document_id: str, share_type: ShareType | str
    ) -> ShareCreated:
        """
        Create a grant. Public-link grants get a 24h URL cached immediately.

        Raises:
            ValidationException: Unknown share type
            ResourceNotFoundException: Not the owner, or no such document
            DocumentStateException: Document is in trash
            StorageException: URL could not be minted (the grant is removed)
        """
        parsed = share_type if isinstance(share_type, ShareType) else ShareType.parse(share_type)
        if parsed is None:
            raise ValidationException(
                f"Invalid share type. Must be one of: {', '.join(ShareType.values())}",
                field="share_type",
            )

        document = await self._require_owner(owner_id, document_id)
        self._require_active(document)

        grant = await metadata_call(
            self.shares.insert_share(
                ShareGrantEntity(
                    id=generate_share_token(),
                    doc_id=document.id,
                    granting_uid=owner_id,
                    share_type=parsed,
                    created_at=utc_now(),
                )
            ),
            "insert_share",
            self.timeout,
        )

        if parsed == ShareType.PUBLIC_LINK:
            try:
                url, expires_at = await self._mint(document)
                grant = await metadata_call(
                    self.shares.update_share(grant.id, {"signed_url": url, "expires_at": expires_at}),
                    "update_share",
                    self.timeout,
                )
            except DriveException:
                await self._discard_grant(grant.id)
                raise

        add_span_attributes(document_id=document.id, share_type=parsed.value)
        logger.info("Created %s share for document %s", parsed.value, document.id)
        return ShareCreated(
            share_id=grant.id,
            share_link=self.share_link(grant.id),
            share_type=grant.share_type,
            signed_url=grant.signed_url,
            expires_at=grant.expires_at,
        )

    async def _discard_grant(self, share_id: str) -> None:
        try:
            await metadata_call(self.shares.delete_share(share_id), "delete_share", self.timeout)
        except DriveException as e:
            logger.warning("Could not remove half-created share %s: %s", share_id, e.message)

    @traced("share.refresh")
    async def refresh_share_link(self, owner_id: str, share_id: str) -> ShareCreated:
        """
        Re-mint a public-link grant's URL and expiry. Owner only.

        Raises:
            ResourceNotFoundException: Unknown grant, or caller is not the owner
            ValidationException: Restricted grants carry no URL
            DocumentStateException: Document is in trash
        """
        grant = await self._find_share(share_id)
        if grant is None:
            raise ResourceNotFoundException("Share", share_id)
        document = await self._require_owner(owner_id, grant.doc_id)
        if grant.is_restricted:
            raise ValidationException("Restricted shares have no link to refresh", field="share_id")
        self._require_active(document)

        url, expires_at = await self._mint(document)
        grant = await metadata_call(
            self.shares.update_share(grant.id, {"signed_url": url, "expires_at": expires_at}),
            "update_share",
            self.timeout,
        )
        logger.info("Refreshed share %s for document %s", grant.id, document.id)
        return ShareCreated(
            share_id=grant.id,
            share_link=self.share_link(grant.id),
            share_type=grant.share_type,
            signed_url=grant.signed_url,
            expires_at=grant.expires_at,
        )

    # ---- recipients ----------------------------------------------------

    @traced("share.add_recipients")
    async def add_recipients(
        self,
        owner_id: str,
        document_id: str,
        emails: str | Iterable[str] | None,
        access_level: AccessLevel | str = AccessLevel.VIEWER,
    ) -> RecipientsAdded:
        """
        Resolve emails to users and union them into ``shared_to``.

        Emails that match no user are reported, not fatal.

        Raises:
            ValidationException: No emails, or unknown access level
            ResourceNotFoundException: Not the owner, or no such document
            ConcurrencyConflictError: The document changed concurrently
        """
        try:
            level = (
                access_level
                if isinstance(access_level, AccessLevel)
                else AccessLevel(str(access_level).strip().lower())
            )
        except ValueError as e:
            raise ValidationException(
                f"Invalid access level. Must be one of: {', '.join(AccessLevel.values())}",
                field="access_level",
            ) from e

        normalized = normalize_emails(emails)
        if not normalized:
            raise ValidationException("At least one recipient email is required", field="emails")

        document = await self._require_owner(owner_id, document_id)
        self._require_active(document)

        users = await metadata_call(
            self.users.find_users_by_emails(normalized), "find_users_by_emails", self.timeout
        )
        resolved = {user.email.lower(): user.id for user in users}
        unresolved = [email for email in normalized if email not in resolved]
        recipient_ids = [
            resolved[email]
            for email in normalized
            if email in resolved and resolved[email] != document.uid
        ]
        added = [uid for uid in dict.fromkeys(recipient_ids) if uid not in document.shared_to]

        if added:
            document = await metadata_call(
                self.documents.update_document(
                    document.id,
                    document.uid,
                    {"shared_to": document.shared_to | set(added)},
                    expected_version=document.version,
                ),
                "update_document",
                self.timeout,
            )

        if unresolved:
            logger.warning("Share of %s: %d email(s) matched no user", document.id, len(unresolved))
        logger.info("Added %d recipient(s) to document %s", len(added), document.id)
        return RecipientsAdded(
            added_ids=added,
            unresolved_emails=unresolved,
            access_level=level,
            document=document,
        )

    async def record_provenance(self, document: DocumentEntity, sharer_id: str) -> DocumentEntity:
        """Add ``sharer_id`` to ``shared_from``."""
        if sharer_id in document.shared_from:
            return document
        return await metadata_call(
            self.documents.update_document(
                document.id,
                document.uid,
                {"shared_from": document.shared_from | {sharer_id}},
                expected_version=document.version,
            ),
            "update_document",
            self.timeout,
        )

    @traced("share.pipeline")
    async def share_document(
        self,
        owner_id: str,
        document_id: str,
        share_type: ShareType | str,
        emails: str | Iterable[str] | None = None,
        access_level: AccessLevel | str = AccessLevel.VIEWER,
    ) -> SharePipelineResult:
        """Create a grant, add any recipients and record who shared."""
        share = await self.create_share(owner_id, document_id, share_type)
        result = SharePipelineResult(share=share)

        if normalize_emails(emails):
            result.recipients = await self.add_recipients(
                owner_id, document_id, emails, access_level
            )
            document = result.recipients.document
        else:
            document = await self._require_owner(owner_id, document_id)

        try:
            await self.record_provenance(document, owner_id)
            result.provenance_recorded = True
        except DriveException as e:
            logger.warning("Could not record provenance on %s: %s", document_id, e.message)
        return result

    # ---- access --------------------------------------------------------

    @traced("share.access_public")
    async def access_public_grant(self, share_id: str) -> PublicAccess:
        """
        Resolve an anonymous share link to its cached URL.

        Never re-mints an expired URL; the owner has to refresh it.

        Raises:
            ResourceNotFoundException: Unknown grant or document
            ShareAccessRestrictedError: Restricted grant
            ShareLinkExpiredError: Cached URL missing or expired
        """
        grant = await self._find_share(share_id)
        if grant is None:
            raise ResourceNotFoundException("Share", share_id)
        if grant.is_restricted:
            raise ShareAccessRestrictedError(grant.id)

        document = await self._find_document(grant.doc_id)
        if document is None or document.is_trashed:
            raise ResourceNotFoundException("Document", grant.doc_id)

        if grant.is_expired(utc_now()):
            raise ShareLinkExpiredError(
                grant.id, grant.expires_at.isoformat() if grant.expires_at else None
            )

        return PublicAccess(
            share_id=grant.id,
            document_id=document.id,
            file_name=document.file_name,
            signed_url=grant.signed_url or "",
            expires_at=grant.expires_at,
        )

    @traced("share.open_stored")
    async def open_via_stored_share(self, requester_id: str, document_id: str) -> OpenedDocument:
        """
        Open through the latest public-link grant's cached URL.

        Raises:
            ResourceNotFoundException: Not visible, trashed, or never shared by link
            ShareLinkExpiredError: The cached URL has expired
        """
        document = await self.resolve_viewer(requester_id, document_id)
        if document.is_trashed:
            raise ResourceNotFoundException("Document", document_id)

        grant = await metadata_call(
            self.shares.find_latest_public_share(document.id),
            "find_latest_public_share",
            self.timeout,
        )
        if grant is None:
            raise ResourceNotFoundException("Share", document_id)
        if grant.is_expired(utc_now()):
            raise ShareLinkExpiredError(
                grant.id, grant.expires_at.isoformat() if grant.expires_at else None
            )

        return self.viewers.open(
            document.id, document.file_name, grant.signed_url or "", grant.expires_at
        )

    # ---- revoke --------------------------------------------------------

    @traced("share.revoke")
    async def revoke_share(
        self,
        requester_id: str,
        document_id: str,
        mode: RevokeMode | str | None = None,
        recipients: str | Iterable[str] | None = None,
    ) -> RevokeResult:
        """
        Revoke access.

        ``owner`` mode clears ``shared_to`` (or the listed subset) and deletes
        every public-link grant. ``recipient`` mode drops only the caller and
        succeeds quietly when there is nothing to drop. Without ``mode`` the
        owner gets ``owner`` and everyone else ``recipient``.

        Raises:
            ValidationException: Unknown mode
            ResourceNotFoundException: Owner mode on a document the caller does not own
            ConcurrencyConflictError: The document changed concurrently
        """
        document = await self._find_document(document_id)

        if mode is None or mode == "":
            resolved_mode = (
                RevokeMode.OWNER
                if document is not None and document.is_owned_by(requester_id)
                else RevokeMode.RECIPIENT
            )
        else:
            try:
                resolved_mode = (
                    mode if isinstance(mode, RevokeMode) else RevokeMode(mode.strip().lower())
                )
            except ValueError as e:
                raise ValidationException(
                    f"Invalid mode. Must be one of: {', '.join(RevokeMode.values())}",
                    field="mode",
                ) from e

        if resolved_mode == RevokeMode.OWNER:
            return await self._revoke_as_owner(requester_id, document_id, document, recipients)
        return await self._revoke_as_recipient(requester_id, document_id, document)

    async def _revoke_as_owner(
        self,
        owner_id: str,
        document_id: str,
        document: DocumentEntity | None,
        recipients: str | Iterable[str] | None,
    ) -> RevokeResult:
        if document is None or not document.is_owned_by(owner_id):
            raise ResourceNotFoundException("Document", document_id)

        targets = parse_id_list(recipients)
        if targets:
            removed = [uid for uid in targets if uid in document.shared_to]
            remaining = document.shared_to - set(targets)
        else:
            removed = sorted(document.shared_to)
            remaining = frozenset()

        # Links go first; a failure here leaves the recipients untouched
        deleted = await metadata_call(
            self.shares.delete_shares(document.id, include_restricted=False),
            "delete_shares",
            self.timeout,
        )
        logger.info("Revoked %d public grant(s) on %s", deleted, document.id)

        if removed:
            document = await metadata_call(
                self.documents.update_document(
                    document.id,
                    document.uid,
                    {"shared_to": remaining},
                    expected_version=document.version,
                ),
                "update_document",
                self.timeout,
            )

        return RevokeResult(
            document_id=document.id,
            mode=RevokeMode.OWNER,
            removed_ids=removed,
            shared_to=sorted(document.shared_to),
            cleared_public_shares=True,
        )

    async def _revoke_as_recipient(
        self,
        requester_id: str,
        document_id: str,
        document: DocumentEntity | None,
    ) -> RevokeResult:
        # Missing and not-shared look the same to the caller
        if document is None or not document.is_shared_with(requester_id):
            return RevokeResult(
                document_id=document_id, mode=RevokeMode.RECIPIENT, already_removed=True
            )

        await metadata_call(
            self.documents.update_document(
                document.id,
                document.uid,
                {"shared_to": document.shared_to - {requester_id}},
                expected_version=document.version,
            ),
            "update_document",
            self.timeout,
        )
        logger.info("Recipient %s left document %s", requester_id, document.id)
        return RevokeResult(
            document_id=document.id, mode=RevokeMode.RECIPIENT, removed_ids=[requester_id]
        )

    # ---- listings ------------------------------------------------------

    async def list_shared_by_owner(self, owner_id: str) -> list[DocumentEntity]:
        return await metadata_call(
            self.documents.list_shared_by_owner(owner_id), "list_shared_by_owner", self.timeout
        )

    async def list_shared_with(self, user_id: str) -> list[DocumentEntity]:
        documents = await metadata_call(
            self.documents.list_shared_with(user_id), "list_shared_with", self.timeout
        )
        return [document for document in documents if not document.is_trashed]
