"""
Viewer dispatch for opened documents.

A signed URL is wrapped by one of a closed set of viewers chosen from the
file extension. Unknown extensions get the URL back untouched.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from urllib.parse import quote

from src.domain.value_objects import FileName


class ViewerKind(str, Enum):
    """Viewer variants"""

    DIRECT = "direct"
    OFFICE = "office"
    MEDIA = "media"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class DirectViewer:
    """Browser renders the file natively (PDF)."""

    kind: ViewerKind = ViewerKind.DIRECT
    extensions: frozenset[str] = frozenset({".pdf"})

    def wrap(self, url: str) -> str:
        return url


@dataclass(frozen=True)
class OfficeGviewWrapper:
    """Office formats are rendered through an embeddable document viewer."""

    base_url: str = "https://docs.google.com/gview"
    kind: ViewerKind = ViewerKind.OFFICE
    extensions: frozenset[str] = frozenset(
        {".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx"}
    )

    def wrap(self, url: str) -> str:
        return f"{self.base_url}?url={quote(url, safe='')}&embedded=true"


@dataclass(frozen=True)
class MediaInlinePlayer:
    """Images and video play inline from the signed URL."""

    kind: ViewerKind = ViewerKind.MEDIA
    extensions: frozenset[str] = frozenset(
        {
            ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".heic", ".svg", ".webp",
            ".mp4", ".webm", ".mov", ".avi", ".mkv",
        }
    )

    def wrap(self, url: str) -> str:
        return url


@dataclass(frozen=True)
class PassthroughViewer:
    kind: ViewerKind = ViewerKind.PASSTHROUGH
    extensions: frozenset[str] = frozenset()

    def wrap(self, url: str) -> str:
        return url


Viewer = DirectViewer | OfficeGviewWrapper | MediaInlinePlayer | PassthroughViewer


@dataclass(frozen=True)
class OpenedDocument:
    """What a caller needs to display a document"""

    document_id: str
    file_name: str
    url: str
    raw_url: str
    viewer: ViewerKind
    expires_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "file_name": self.file_name,
            "url": self.url,
            "raw_url": self.raw_url,
            "viewer": self.viewer.value,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


class ViewerService:
    """Chooses the viewer for a file and wraps its URL."""

    def __init__(self, office_viewer_base_url: str = "https://docs.google.com/gview"):
        self._fallback = PassthroughViewer()
        self._by_extension: dict[str, Viewer] = {}
        for viewer in (
            DirectViewer(),
            OfficeGviewWrapper(base_url=office_viewer_base_url.rstrip("?")),
            MediaInlinePlayer(),
        ):
            for extension in viewer.extensions:
                self._by_extension[extension] = viewer

    def for_extension(self, extension: str) -> Viewer:
        normalized = extension.strip().lower()
        if normalized and not normalized.startswith("."):
            normalized = f".{normalized}"
        return self._by_extension.get(normalized, self._fallback)

    def for_file_name(self, file_name: str) -> Viewer:
        try:
            extension = FileName(file_name).extension
        except ValueError:
            return self._fallback
        return self.for_extension(extension)

    def open(
        self,
        document_id: str,
        file_name: str,
        url: str,
        expires_at: datetime | None = None,
    ) -> OpenedDocument:
        viewer = self.for_file_name(file_name)
        return OpenedDocument(
            document_id=document_id,
            file_name=file_name,
            url=viewer.wrap(url),
            raw_url=url,
            viewer=viewer.kind,
            expires_at=expires_at,
        )
