"""
Batch coordinator for lifecycle operations.

Resolves a single id or an id set with one owner-scoped query, then runs the
requested transition on each document independently so one failing item
never affects the others.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.application.services.timeouts import metadata_call
from src.application.use_cases.documents.transition import (TransitionResult,
                                                            TransitionState)
from src.domain.exceptions import (DriveException, ResourceNotFoundException,
                                   ValidationException)
from src.shared.enums import BatchOperation, ItemOutcome, TransitionKind
from src.shared.telemetry.logging import get_logger
from src.shared.telemetry.tracing import add_span_attributes, traced
from src.shared.utils.sanitization import parse_id_list

if TYPE_CHECKING:
    from src.application.interfaces.repositories import IDocumentRepository
    from src.application.use_cases.documents.lifecycle import \
        DocumentLifecycleEngine
    from src.infrastructure.config.settings import Settings

logger = get_logger(__name__)

OPERATION_KINDS = {
    BatchOperation.TRASH: TransitionKind.TRASH,
    BatchOperation.RESTORE: TransitionKind.RESTORE,
    BatchOperation.PERMANENT_DELETE: TransitionKind.PERMANENT_DELETE,
}


@dataclass
class BatchResult:
    """Aggregated per-item results of one batch run"""

    operation: BatchOperation
    results: list[TransitionResult] = field(default_factory=list)
    missing_ids: list[str] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        tally = Counter(result.outcome for result in self.results)
        return {outcome.value: tally.get(outcome, 0) for outcome in ItemOutcome}

    @property
    def all_ok(self) -> bool:
        return not self.missing_ids and all(r.ok or r.skipped for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "results": [result.to_dict() for result in self.results],
            "missing_ids": list(self.missing_ids),
            "counts": self.counts,
        }


class BatchCoordinator:
    """Fans trash / restore / permanent delete out over a set of documents."""

    def __init__(
        self,
        engine: DocumentLifecycleEngine,
        document_repo: IDocumentRepository,
        settings: Settings,
    ) -> None:
        self.engine = engine
        self.documents = document_repo
        self.timeout = settings.adapter_timeout_seconds

    @staticmethod
    def resolve_ids(
        document_id: str | None = None,
        document_ids: str | Iterable[str] | None = None,
    ) -> list[str]:
        """
        Turn the request shape into an ordered id list.

        Raises:
            ValidationException: If both or neither shape is given, or the
                set parses to nothing
        """
        single = (document_id or "").strip()
        if single and document_ids is not None:
            raise ValidationException("Provide either a document id or a list of ids, not both")
        if single:
            return [single]
        if document_ids is None:
            raise ValidationException("No document ids provided", field="ids")

        ids = parse_id_list(document_ids)
        if not ids:
            raise ValidationException("No document ids provided", field="ids")
        return ids

    @traced("batch.run")
    async def run(
        self,
        operation: BatchOperation | str,
        uid: str,
        document_id: str | None = None,
        document_ids: str | Iterable[str] | None = None,
    ) -> BatchResult:
        """
        Run one lifecycle operation over the requested documents.

        Raises:
            ValidationException: On a structurally invalid request
            ResourceNotFoundException: If none of the ids belong to ``uid``
        """
        try:
            operation = BatchOperation(operation)
        except ValueError as e:
            raise ValidationException(f"Unsupported batch operation: {operation}") from e

        ids = self.resolve_ids(document_id, document_ids)
        found = await metadata_call(
            self.documents.find_documents_by_ids_and_owner(ids, uid),
            "find_documents_by_ids_and_owner",
            self.timeout,
        )
        if not found:
            raise ResourceNotFoundException("Document", ", ".join(ids))

        by_id = {document.id: document for document in found}
        batch = BatchResult(
            operation=operation,
            missing_ids=[doc_id for doc_id in ids if doc_id not in by_id],
        )
        transition = {
            BatchOperation.TRASH: self.engine.trash,
            BatchOperation.RESTORE: self.engine.restore,
            BatchOperation.PERMANENT_DELETE: self.engine.permanently_delete,
        }[operation]

        # Sequential: items share one metadata session
        for doc_id in ids:
            document = by_id.get(doc_id)
            if document is None:
                continue
            try:
                result = await transition(document)
            except DriveException as e:
                logger.error("%s of %s failed unexpectedly: %s", operation.value, doc_id, e.message)
                result = TransitionResult.failed(
                    TransitionState(OPERATION_KINDS[operation], doc_id), "unexpected_error", e
                )
            batch.results.append(result)

        counts = batch.counts
        add_span_attributes(
            operation=operation.value,
            requested=len(ids),
            missing=len(batch.missing_ids),
            errors=counts[ItemOutcome.ERROR.value],
        )
        logger.info(
            "Batch %s for %s: %s (missing %d)",
            operation.value, uid, counts, len(batch.missing_ids),
        )
        return batch

    async def trash(self, uid: str, document_id: str | None = None, document_ids=None) -> BatchResult:
        return await self.run(BatchOperation.TRASH, uid, document_id, document_ids)

    async def restore(self, uid: str, document_id: str | None = None, document_ids=None) -> BatchResult:
        return await self.run(BatchOperation.RESTORE, uid, document_id, document_ids)

    async def permanently_delete(
        self, uid: str, document_id: str | None = None, document_ids=None
    ) -> BatchResult:
        return await self.run(BatchOperation.PERMANENT_DELETE, uid, document_id, document_ids)
