"""
Document operations use case.

Orchestrates upload, listing, open/download and rename, coordinating
object storage with the metadata store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from src.application.services.timeouts import metadata_call, storage_call
from src.domain.entities import DocumentEntity
from src.domain.enums import DocumentStatus
from src.domain.exceptions import (DriveException, ResourceNotFoundException,
                                   ValidationException)
from src.domain.value_objects import FileName, StorageKey
from src.infrastructure.exceptions import (DatabaseOperationError,
                                           StorageNotFoundError)
from src.shared.telemetry.logging import get_logger
from src.shared.telemetry.tracing import add_span_attributes, traced
from src.shared.utils.datetime import utc_now
from src.shared.utils.generators import generate_cuid

if TYPE_CHECKING:
    from src.application.interfaces.repositories import IDocumentRepository
    from src.application.interfaces.storage import IStorageService
    from src.application.services.viewer_service import (OpenedDocument,
                                                         ViewerService)
    from src.application.use_cases.documents.lifecycle import \
        DocumentLifecycleEngine
    from src.application.use_cases.documents.transition import \
        TransitionResult
    from src.application.use_cases.sharing.share_authorization import \
        ShareAuthorizationEngine
    from src.infrastructure.config.settings import Settings

logger = get_logger(__name__)


@dataclass
class UploadedFile:
    """One file of an upload request"""

    file_name: str
    data: bytes
    content_type: str = "application/octet-stream"


@dataclass
class DownloadLink:
    document_id: str
    file_name: str
    url: str
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "file_name": self.file_name,
            "url": self.url,
            "expires_at": self.expires_at.isoformat(),
        }


class DocumentService:
    """
    Orchestrates document operations coordinating storage + database.

    Responsibilities:
    - Generate storage keys for uploads
    - Coordinate storage writes with metadata inserts
    - Mint fresh short-lived URLs for owners and recipients
    - Hand renames to the lifecycle engine after an ownership check
    """

    def __init__(
        self,
        storage_service: IStorageService,
        document_repo: IDocumentRepository,
        lifecycle: DocumentLifecycleEngine,
        authorization: ShareAuthorizationEngine,
        viewers: ViewerService,
        settings: Settings,
    ) -> None:
        self.storage = storage_service
        self.document_repo = document_repo
        self.lifecycle = lifecycle
        self.authorization = authorization
        self.viewers = viewers
        self.documents_prefix = settings.documents_prefix.strip("/")
        self.max_upload_files = settings.max_upload_files
        self.max_upload_size = settings.max_upload_size
        self.probe_ttl = timedelta(seconds=settings.probe_url_ttl_seconds)
        self.open_ttl = timedelta(seconds=settings.open_url_ttl_seconds)
        self.timeout = settings.adapter_timeout_seconds

    def _validate_upload(self, files: list[UploadedFile]) -> None:
        if not files:
            raise ValidationException("No files uploaded", field="files")
        if len(files) > self.max_upload_files:
            raise ValidationException(
                f"At most {self.max_upload_files} files can be uploaded at once",
                field="files",
            )
        for upload in files:
            if len(upload.data) > self.max_upload_size:
                raise ValidationException(
                    f"{upload.file_name} exceeds the {self.max_upload_size} byte limit",
                    field="files",
                )

    @traced("document.upload")
    async def upload_documents(self, uid: str, files: list[UploadedFile]) -> list[DocumentEntity]:
        """
        Upload files and create their metadata rows.

        Workflow:
        1. Sanitize every name (whitespace -> ``_``)
        2. Refuse the request if any key already holds an object
        3. Per file, put the object at ``documents/{uid}/{name}``
        4. Insert the metadata row; on failure remove the object again

        Raises:
            ValidationException: Empty request, too many files, too large, bad or taken name
            StorageException: If an object write fails
            DatabaseOperationError: If a metadata insert fails
        """
        self._validate_upload(files)
        names = self._upload_names(files)
        keys = [StorageKey.for_upload(self.documents_prefix, uid, name.value) for name in names]
        for file_name, key in zip(names, keys):
            if await self._key_taken(key):
                raise ValidationException(
                    f"A document named {file_name.value} already exists", field="file_name"
                )

        created: list[DocumentEntity] = []
        for upload, file_name, key in zip(files, names, keys):
            await storage_call(
                self.storage.put(str(key), upload.data, upload.content_type),
                "put",
                self.timeout,
            )

            now = utc_now()
            try:
                document = await metadata_call(
                    self.document_repo.insert_document(
                        DocumentEntity(
                            id=generate_cuid(),
                            uid=uid,
                            file_name=file_name.value,
                            storage_key=str(key),
                            mimetype=upload.content_type,
                            size=len(upload.data),
                            uploaded_at=now,
                            updated_at=now,
                        )
                    ),
                    "insert_document",
                    self.timeout,
                )
            except DriveException as e:
                logger.error("Metadata insert failed for %s, removing object: %s", key, e.message)
                await self._discard_object(key)
                if isinstance(e, DatabaseOperationError):
                    raise
                raise DatabaseOperationError("insert_document", e.message) from e

            logger.info("Uploaded %s for %s as document %s", key, uid, document.id)
            created.append(document)

        add_span_attributes(uploaded=len(created))
        return created

    def _upload_names(self, files: list[UploadedFile]) -> list[FileName]:
        names: list[FileName] = []
        for upload in files:
            try:
                names.append(FileName.for_upload(upload.file_name))
            except ValueError as e:
                raise ValidationException(str(e), field="file_name") from e
        if len({name.value for name in names}) != len(names):
            raise ValidationException("Uploaded files must have distinct names", field="files")
        return names

    async def _key_taken(self, key: StorageKey) -> bool:
        try:
            await storage_call(
                self.storage.signed_url(str(key), self.probe_ttl), "probe", self.timeout
            )
        except StorageNotFoundError:
            return False
        return True

    async def _discard_object(self, key: StorageKey) -> None:
        try:
            await storage_call(self.storage.remove([str(key)]), "remove", self.timeout)
        except DriveException as e:
            logger.warning("Could not remove orphaned object %s: %s", key, e.message)

    async def list_documents(self, uid: str) -> list[DocumentEntity]:
        """Active documents of ``uid``, newest upload first."""
        return await metadata_call(
            self.document_repo.list_by_owner(uid, DocumentStatus.ACTIVE),
            "list_by_owner",
            self.timeout,
        )

    async def list_trash(self, uid: str) -> list[DocumentEntity]:
        return await metadata_call(
            self.document_repo.list_by_owner(uid, DocumentStatus.TRASHED),
            "list_by_owner",
            self.timeout,
        )

    async def _viewable(self, requester_id: str, document_id: str) -> DocumentEntity:
        document = await self.authorization.resolve_viewer(requester_id, document_id)
        if document.is_trashed or not document.storage_key:
            raise ResourceNotFoundException("Document", document_id)
        return document

    @traced("document.open")
    async def open_document(self, requester_id: str, document_id: str) -> OpenedDocument:
        """
        Mint a fresh 10-minute URL and wrap it for the file's viewer.

        Raises:
            ResourceNotFoundException: Not visible to the requester, or trashed
            StorageException: If the object is missing or cannot be signed
        """
        document = await self._viewable(requester_id, document_id)
        expires_at = utc_now() + self.open_ttl
        url = await storage_call(
            self.storage.signed_url(document.storage_key, self.open_ttl),
            "signed_url",
            self.timeout,
        )
        opened = self.viewers.open(document.id, document.file_name, url, expires_at)
        add_span_attributes(document_id=document.id, viewer=opened.viewer.value)
        return opened

    @traced("document.download")
    async def download_url(self, requester_id: str, document_id: str) -> DownloadLink:
        """Fresh 10-minute URL that downloads under the document's name."""
        document = await self._viewable(requester_id, document_id)
        expires_at = utc_now() + self.open_ttl
        url = await storage_call(
            self.storage.signed_url(
                document.storage_key, self.open_ttl, download_name=document.file_name
            ),
            "signed_url",
            self.timeout,
        )
        return DownloadLink(document.id, document.file_name, url, expires_at)

    async def rename_document(self, uid: str, document_id: str, new_name: str) -> TransitionResult:
        """
        Rename an owned document.

        Raises:
            ResourceNotFoundException: If ``uid`` does not own the document
            ValidationException: If the new name is empty after sanitizing
            DocumentStateException: If the document is in trash
        """
        found = await metadata_call(
            self.document_repo.find_documents_by_ids_and_owner([document_id], uid),
            "find_documents_by_ids_and_owner",
            self.timeout,
        )
        if not found:
            raise ResourceNotFoundException("Document", document_id)
        return await self.lifecycle.rename(found[0], new_name)
