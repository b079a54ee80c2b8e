"""Application services."""

from src.application.services.timeouts import metadata_call, storage_call
from src.application.services.viewer_service import (DirectViewer,
                                                     MediaInlinePlayer,
                                                     OfficeGviewWrapper,
                                                     OpenedDocument,
                                                     PassthroughViewer,
                                                     ViewerKind, ViewerService)

__all__ = [
    "DirectViewer",
    "MediaInlinePlayer",
    "OfficeGviewWrapper",
    "OpenedDocument",
    "PassthroughViewer",
    "ViewerKind",
    "ViewerService",
    "metadata_call",
    "storage_call",
]
