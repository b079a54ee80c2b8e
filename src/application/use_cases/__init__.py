"""Application use cases."""

from src.application.use_cases.documents.batch import (BatchCoordinator,
                                                       BatchResult)
from src.application.use_cases.documents.document_operations import (
    DocumentService, DownloadLink, UploadedFile)
from src.application.use_cases.documents.lifecycle import \
    DocumentLifecycleEngine
from src.application.use_cases.documents.transition import (TransitionResult,
                                                            TransitionState)
from src.application.use_cases.sharing.share_authorization import (
    PublicAccess, RecipientsAdded, RevokeResult, ShareAuthorizationEngine,
    ShareCreated, SharePipelineResult)

__all__ = [
    "BatchCoordinator",
    "BatchResult",
    "DocumentLifecycleEngine",
    "DocumentService",
    "DownloadLink",
    "PublicAccess",
    "RecipientsAdded",
    "RevokeResult",
    "ShareAuthorizationEngine",
    "ShareCreated",
    "SharePipelineResult",
    "TransitionResult",
    "TransitionState",
    "UploadedFile",
]
