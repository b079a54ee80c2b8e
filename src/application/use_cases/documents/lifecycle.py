"""
Document lifecycle engine.

Keeps object storage and the metadata store consistent across the
multi-step transitions of a document:

    active --trash--> trashed --restore--> active
    trashed --permanently_delete--> (gone)
    active --rename--> active

Storage is mutated first and metadata last. Failures before a transition's
point of no return abort (rolling storage back where a step already ran);
failures after it are recorded as warnings on a successful result.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from src.application.services.timeouts import metadata_call, storage_call
from src.application.use_cases.documents.transition import (TransitionResult,
                                                            TransitionState)
from src.domain.entities import DocumentEntity
from src.domain.enums import DocumentStatus, ErrorCode
from src.domain.exceptions import (DocumentStateException, DriveException,
                                   ValidationException)
from src.domain.value_objects import FileName, StorageKey
from src.infrastructure.exceptions import (StorageException,
                                           StorageNotFoundError)
from src.shared.enums import TransitionKind, TransitionStep
from src.shared.telemetry.logging import get_logger
from src.shared.telemetry.tracing import (add_span_attributes, add_span_event,
                                          traced)

if TYPE_CHECKING:
    from src.application.interfaces.repositories import IDocumentRepository
    from src.application.interfaces.storage import IStorageService
    from src.infrastructure.config.settings import Settings

logger = get_logger(__name__)


class DocumentLifecycleEngine:
    """
    Runs trash / restore / permanent delete / rename on one document.

    The engine holds no per-request state; every call gets its own
    ``TransitionState``. Outcomes are returned as ``TransitionResult`` values,
    only structural misuse (bad rename input, wrong state for rename) raises.
    """

    def __init__(
        self,
        storage: IStorageService,
        document_repo: IDocumentRepository,
        settings: Settings,
    ) -> None:
        self.storage = storage
        self.documents = document_repo
        self.trash_prefix = settings.trash_prefix.strip("/")
        self.probe_ttl = timedelta(seconds=settings.probe_url_ttl_seconds)
        self.timeout = settings.adapter_timeout_seconds

    # ---- adapter calls -------------------------------------------------

    async def _probe(self, key: StorageKey) -> None:
        await storage_call(
            self.storage.signed_url(str(key), self.probe_ttl), "probe", self.timeout
        )

    async def _occupied(self, key: StorageKey) -> bool:
        """True when an object already lives at ``key``."""
        try:
            await self._probe(key)
        except StorageNotFoundError:
            return False
        return True

    async def _copy(self, source: StorageKey, target: StorageKey) -> None:
        await storage_call(self.storage.copy(str(source), str(target)), "copy", self.timeout)

    async def _remove(self, *keys: StorageKey) -> None:
        await storage_call(
            self.storage.remove([str(key) for key in keys]), "remove", self.timeout
        )

    async def _update(self, document: DocumentEntity, patch: dict) -> DocumentEntity:
        return await metadata_call(
            self.documents.update_document(
                document.id, document.uid, patch, expected_version=document.version
            ),
            "update_document",
            self.timeout,
        )

    def _step(self, state: TransitionState, step: TransitionStep) -> None:
        state.complete(step)
        add_span_event("transition.step", {"step": step.value})

    def _finish(self, result: TransitionResult) -> TransitionResult:
        add_span_attributes(
            document_id=result.document_id,
            outcome=result.outcome.value,
            reason=result.reason,
        )
        return result

    # ---- transitions ---------------------------------------------------

    @traced("document.trash")
    async def trash(self, document: DocumentEntity) -> TransitionResult:
        """
        Move an active document's object under the owner's trash prefix.

        Steps: probe -> copy -> remove_source -> update_metadata.
        """
        state = TransitionState(TransitionKind.TRASH, document.id)

        if document.is_trashed:
            return self._finish(TransitionResult.skip(state, "already_trashed"))

        source = StorageKey.parse(document.storage_key)
        if source is None:
            logger.error("Trash aborted for %s: document has no storage key", document.id)
            return self._finish(
                TransitionResult.failed(
                    state, "object_not_found", code=ErrorCode.NOT_FOUND.value,
                    detail="Document has no storage key",
                )
            )

        try:
            await self._probe(source)
        except StorageException as e:
            logger.error("Trash aborted for %s: object missing at %s", document.id, source)
            return self._finish(TransitionResult.failed(state, "object_not_found", e))
        self._step(state, TransitionStep.PROBE)

        trash_key = source.to_trash(document.uid, self.trash_prefix)
        try:
            await self._copy(source, trash_key)
        except StorageException as e:
            logger.error("Trash aborted for %s: copy to %s failed: %s", document.id, trash_key, e.message)
            return self._finish(TransitionResult.failed(state, "copy_failed", e))
        self._step(state, TransitionStep.COPY)

        try:
            await self._remove(source)
        except StorageException as e:
            logger.error("Trash aborted for %s: removing %s failed: %s", document.id, source, e.message)
            cleaned = await self._rollback_remove(state, trash_key)
            return self._finish(
                TransitionResult.failed(
                    state,
                    "remove_failed",
                    e,
                    code=None if cleaned else ErrorCode.PARTIAL_FAILURE.value,
                )
            )
        self._step(state, TransitionStep.REMOVE_SOURCE)

        try:
            await self._update(
                document,
                {"status": DocumentStatus.TRASHED, "trash_key": str(trash_key)},
            )
            self._step(state, TransitionStep.UPDATE_METADATA)
        except DriveException as e:
            logger.warning(
                "Document %s moved to %s but metadata update failed: %s",
                document.id, trash_key, e.message,
            )
            state.warn("db_update_failed", e)

        logger.info("Trashed document %s -> %s", document.id, trash_key)
        return self._finish(TransitionResult.succeeded(state, trash_key=str(trash_key)))

    @traced("document.restore")
    async def restore(self, document: DocumentEntity) -> TransitionResult:
        """
        Move a trashed document's object back to its original key.

        Steps: copy -> remove_source -> update_metadata. An object already at
        the destination aborts the restore before anything moves.
        """
        state = TransitionState(TransitionKind.RESTORE, document.id)

        if not document.is_trashed:
            return self._finish(TransitionResult.skip(state, "not_trashed"))

        trash_key = StorageKey.parse(document.trash_key)
        if trash_key is None:
            return self._finish(TransitionResult.skip(state, "missing_trash_path"))

        destination = StorageKey.parse(document.storage_key) or StorageKey.from_trash(
            trash_key.value, document.uid, self.trash_prefix
        )
        if destination is None:
            logger.error("Restore aborted for %s: cannot derive original key from %s", document.id, trash_key)
            return self._finish(
                TransitionResult.failed(
                    state, "cannot_reconstruct_original_path",
                    detail=f"Cannot derive original key from {trash_key}",
                )
            )
        if destination.value.startswith(f"{self.trash_prefix}/") or destination == trash_key:
            logger.error("Restore aborted for %s: destination %s is inside trash", document.id, destination)
            return self._finish(
                TransitionResult.failed(
                    state, "invalid_original_path",
                    detail=f"Restore destination {destination} is inside trash",
                )
            )

        try:
            taken = await self._occupied(destination)
        except StorageException as e:
            logger.error("Restore aborted for %s: cannot check %s: %s", document.id, destination, e.message)
            return self._finish(TransitionResult.failed(state, "copy_failed", e))
        if taken:
            logger.error("Restore aborted for %s: %s is taken by another object", document.id, destination)
            return self._finish(
                TransitionResult.failed(
                    state, "target_exists",
                    detail=f"An object already exists at {destination}",
                )
            )

        try:
            await self._copy(trash_key, destination)
        except StorageException as e:
            logger.error("Restore aborted for %s: copy to %s failed: %s", document.id, destination, e.message)
            return self._finish(TransitionResult.failed(state, "copy_failed", e))
        self._step(state, TransitionStep.COPY)

        try:
            await self._remove(trash_key)
            self._step(state, TransitionStep.REMOVE_SOURCE)
        except StorageException as e:
            logger.warning(
                "Document %s restored but trash copy %s was not removed: %s",
                document.id, trash_key, e.message,
            )
            state.warn("trash_remove_failed", e, kept_at=str(trash_key))

        try:
            await self._update(
                document,
                {
                    "status": DocumentStatus.ACTIVE,
                    "storage_key": str(destination),
                    "trash_key": None,
                },
            )
            self._step(state, TransitionStep.UPDATE_METADATA)
        except DriveException as e:
            logger.warning(
                "Document %s restored to %s but metadata update failed: %s",
                document.id, destination, e.message,
            )
            state.warn("db_update_failed", e)

        logger.info("Restored document %s -> %s", document.id, destination)
        return self._finish(TransitionResult.succeeded(state, restored_to=str(destination)))

    @traced("document.permanent_delete")
    async def permanently_delete(self, document: DocumentEntity) -> TransitionResult:
        """
        Remove a trashed document's object and metadata row. Terminal.

        Steps: remove_object -> delete_row. Both failures are warnings.
        """
        state = TransitionState(TransitionKind.PERMANENT_DELETE, document.id)

        if not document.is_trashed:
            return self._finish(TransitionResult.skip(state, "not_trashed"))

        trash_key = StorageKey.parse(document.trash_key)
        if trash_key is None:
            return self._finish(TransitionResult.skip(state, "missing_trash_path"))
        if not trash_key.value.startswith(f"{self.trash_prefix}/{document.uid}/"):
            logger.error("Permanent delete refused for %s: %s is outside the owner's trash", document.id, trash_key)
            return self._finish(
                TransitionResult.failed(
                    state, "invalid_trash_path",
                    detail=f"{trash_key} is not inside the owner's trash",
                )
            )

        try:
            await self._remove(trash_key)
            self._step(state, TransitionStep.REMOVE_OBJECT)
        except StorageException as e:
            logger.warning("Could not remove %s for document %s: %s", trash_key, document.id, e.message)
            state.warn("storage_remove_failed", e)

        try:
            deleted = await metadata_call(
                self.documents.delete_document(document.id, document.uid),
                "delete_document",
                self.timeout,
            )
            if deleted:
                self._step(state, TransitionStep.DELETE_ROW)
            else:
                state.warn("db_row_delete_failed", "Metadata row was already gone")
        except DriveException as e:
            logger.warning("Could not delete metadata row for %s: %s", document.id, e.message)
            state.warn("db_row_delete_failed", e)

        logger.info("Permanently deleted document %s", document.id)
        return self._finish(TransitionResult.succeeded(state))

    @traced("document.rename")
    async def rename(self, document: DocumentEntity, new_name: str) -> TransitionResult:
        """
        Rename an active document in place (same directory, new file name).

        Steps: probe -> copy -> remove_source -> update_metadata. A target
        name that is already taken aborts before the copy. A metadata
        failure copies the object back to the old key and removes the new one.

        Raises:
            ValidationException: If the sanitized name is empty
            DocumentStateException: If the document is trashed
        """
        try:
            file_name = FileName(new_name or "")
        except ValueError as e:
            raise ValidationException(str(e), field="new_name") from e

        if document.is_trashed:
            raise DocumentStateException(
                document.id, document.status.value, "Restore the document before renaming it"
            )

        state = TransitionState(TransitionKind.RENAME, document.id)
        source = StorageKey.parse(document.storage_key)
        if source is None:
            return self._finish(
                TransitionResult.failed(
                    state, "object_not_found", code=ErrorCode.NOT_FOUND.value,
                    detail="Document has no storage key",
                )
            )

        target = source.with_file_name(file_name.value)
        if target == source:
            return self._finish(
                TransitionResult.succeeded(
                    state, file_name=file_name.value, storage_key=str(source), unchanged=True
                )
            )

        try:
            await self._probe(source)
        except StorageException as e:
            logger.error("Rename aborted for %s: object missing at %s", document.id, source)
            return self._finish(TransitionResult.failed(state, "object_not_found", e))
        self._step(state, TransitionStep.PROBE)

        try:
            taken = await self._occupied(target)
        except StorageException as e:
            logger.error("Rename aborted for %s: cannot check %s: %s", document.id, target, e.message)
            return self._finish(TransitionResult.failed(state, "copy_failed", e))
        if taken:
            logger.error("Rename aborted for %s: %s is taken by another object", document.id, target)
            return self._finish(
                TransitionResult.failed(
                    state, "target_exists",
                    detail=f"A document named {file_name.value} already exists",
                )
            )

        try:
            await self._copy(source, target)
        except StorageException as e:
            logger.error("Rename aborted for %s: copy to %s failed: %s", document.id, target, e.message)
            return self._finish(TransitionResult.failed(state, "copy_failed", e))
        self._step(state, TransitionStep.COPY)

        try:
            await self._remove(source)
        except StorageException as e:
            logger.error("Rename aborted for %s: removing %s failed: %s", document.id, source, e.message)
            cleaned = await self._rollback_remove(state, target)
            return self._finish(
                TransitionResult.failed(
                    state,
                    "remove_failed",
                    e,
                    code=None if cleaned else ErrorCode.PARTIAL_FAILURE.value,
                )
            )
        self._step(state, TransitionStep.REMOVE_SOURCE)

        try:
            updated = await self._update(
                document, {"file_name": file_name.value, "storage_key": str(target)}
            )
        except DriveException as e:
            logger.error("Rename of %s failed at metadata write: %s", document.id, e.message)
            restored = await self._rollback_copy_back(state, target, source)
            return self._finish(
                TransitionResult.failed(
                    state,
                    "db_update_failed",
                    e,
                    code=None if restored else ErrorCode.PARTIAL_FAILURE.value,
                )
            )
        self._step(state, TransitionStep.UPDATE_METADATA)

        logger.info("Renamed document %s: %s -> %s", document.id, source, target)
        return self._finish(
            TransitionResult.succeeded(
                state,
                file_name=updated.file_name,
                storage_key=updated.storage_key,
                version=updated.version,
            )
        )

    # ---- rollback ------------------------------------------------------

    async def _rollback_remove(self, state: TransitionState, target: StorageKey) -> bool:
        """Best-effort removal of a copy made earlier in the transition."""
        try:
            await self._remove(target)
        except StorageException as e:
            logger.warning("Rollback could not remove %s: %s", target, e.message)
            state.warn("rollback_failed", e, key=str(target))
            return False
        state.rolled_back(TransitionStep.ROLLBACK_REMOVE_TARGET)
        add_span_event("transition.rollback", {"step": "remove_target"})
        return True

    async def _rollback_copy_back(
        self, state: TransitionState, target: StorageKey, source: StorageKey
    ) -> bool:
        """Put the object back at ``source`` and drop the ``target`` copy."""
        try:
            await self._copy(target, source)
        except StorageException as e:
            logger.warning("Rollback could not copy %s back to %s: %s", target, source, e.message)
            state.warn("rollback_failed", e, key=str(source))
            return False
        state.rolled_back(TransitionStep.ROLLBACK_COPY_BACK)
        add_span_event("transition.rollback", {"step": "copy_back"})
        return await self._rollback_remove(state, target)
