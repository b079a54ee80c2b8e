"""
Local filesystem storage implementation.

Features:
- Path traversal protection (resolve + prefix validation)
- Atomic writes (temp file + atomic rename) for puts and copies
- File permissions (0o640 files, 0o750 dirs)
- Token-based temporary URLs with expiration
"""

import os
import secrets
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from urllib.parse import quote

import aiofiles
import aiofiles.os

from src.infrastructure.exceptions import (StorageCopyError,
                                           StorageDeleteError,
                                           StorageNotFoundError,
                                           StoragePermissionError,
                                           StorageUploadError)


class LocalStorageService:
    """
    Local filesystem storage with atomic writes and path traversal protection.

    Directory Structure:
    {storage_root}/documents/{uid}/{file_name}
    {storage_root}/trash/{uid}/documents/{uid}/{file_name}

    Security:
    - All paths validated against storage root (no ../.. attacks)
    - Atomic writes via temp file + rename
    - File permissions: 0o640 (owner rw, group r)
    - Directory permissions: 0o750 (owner rwx, group rx)
    """

    CHUNK_SIZE = 64 * 1024  # 64KB chunks for streaming copies

    def __init__(self, storage_root: str, base_url: str | None = None) -> None:
        """
        Initialize local storage service.

        Args:
            storage_root: Base directory for all file storage
            base_url: Base URL for download endpoints (e.g., "https://api.example.com")
                     If None, returns relative path
        """
        self.storage_root = Path(storage_root).resolve()
        self.base_url = base_url.rstrip("/") if base_url else None
        # {token: (storage_key, expires_at, download_name)}
        self._download_tokens: dict[str, tuple[str, datetime, str | None]] = {}

        self.storage_root.mkdir(parents=True, exist_ok=True, mode=0o750)

    def _get_full_path(self, storage_key: str) -> Path:
        """
        Get full filesystem path with security validation.

        Raises:
            StoragePermissionError: If path traversal detected
        """
        full_path = (self.storage_root / storage_key).resolve()

        try:
            full_path.relative_to(self.storage_root)
        except ValueError as e:
            raise StoragePermissionError(storage_key, "path_validation") from e

        if full_path == self.storage_root:
            raise StoragePermissionError(storage_key, "path_validation")
        return full_path

    async def _write_atomic(self, target_path: Path, chunks) -> None:
        target_path.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
        temp_fd, temp_path = tempfile.mkstemp(
            dir=target_path.parent, prefix=".tmp_", suffix=target_path.suffix
        )
        os.close(temp_fd)
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
            os.chmod(temp_path, 0o640)
            os.replace(temp_path, target_path)
        finally:
            if Path(temp_path).exists():
                os.unlink(temp_path)

    async def _read_chunks(self, file_path: Path):
        async with aiofiles.open(file_path, "rb") as f:
            while True:
                chunk = await f.read(self.CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    async def put(self, storage_key: str, data: bytes, content_type: str) -> None:
        """
        Write an object atomically, replacing whatever lived at the key.

        Raises:
            StoragePermissionError: If the key escapes the storage root
            StorageUploadError: If the write fails
        """
        target_path = self._get_full_path(storage_key)

        async def single_chunk():
            yield data

        try:
            await self._write_atomic(target_path, single_chunk())
        except OSError as e:
            raise StorageUploadError(storage_key, f"Upload failed: {str(e)}") from e

    async def copy(self, source_key: str, target_key: str) -> None:
        """
        Copy an object to a new key. The source stays in place.

        Raises:
            StorageCopyError: If the source is missing or the copy fails
        """
        source_path = self._get_full_path(source_key)
        target_path = self._get_full_path(target_key)

        if not source_path.is_file():
            raise StorageCopyError(source_key, target_key, "source object not found")

        try:
            await self._write_atomic(target_path, self._read_chunks(source_path))
        except OSError as e:
            raise StorageCopyError(source_key, target_key, str(e)) from e

    async def remove(self, storage_keys: list[str]) -> None:
        """
        Delete objects and prune empty parent directories.

        Raises:
            StorageDeleteError: If any existing object cannot be removed
        """
        failed: list[str] = []
        reasons: list[str] = []

        for storage_key in dict.fromkeys(storage_keys):
            if not storage_key:
                continue
            file_path = self._get_full_path(storage_key)
            if not file_path.exists():
                continue
            try:
                await aiofiles.os.remove(file_path)
            except OSError as e:
                failed.append(storage_key)
                reasons.append(str(e))
                continue
            self._prune_empty_parents(file_path.parent)

        if failed:
            raise StorageDeleteError(failed, "; ".join(reasons))

    def _prune_empty_parents(self, parent: Path) -> None:
        while parent != self.storage_root:
            try:
                if any(parent.iterdir()):
                    break
                parent.rmdir()
                parent = parent.parent
            except OSError:
                break

    async def signed_url(
        self,
        storage_key: str,
        ttl: timedelta,
        download_name: str | None = None,
    ) -> str:
        """
        Generate temporary download URL with expiration.

        Raises:
            StorageNotFoundError: If file doesn't exist
        """
        file_path = self._get_full_path(storage_key)
        if not file_path.is_file():
            raise StorageNotFoundError(storage_key)

        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(UTC) + ttl
        self._download_tokens[token] = (storage_key, expires_at, download_name)
        self._cleanup_expired_tokens()

        path = f"/api/storage/download/{token}"
        if download_name:
            path = f"{path}?filename={quote(download_name)}"
        if self.base_url:
            return f"{self.base_url}{path}"
        return path

    def _cleanup_expired_tokens(self) -> None:
        """Remove expired download tokens."""
        now = datetime.now(UTC)
        expired = [
            token
            for token, (_, expires_at, _) in self._download_tokens.items()
            if expires_at <= now
        ]
        for token in expired:
            del self._download_tokens[token]

    def validate_download_token(self, token: str) -> str | None:
        """
        Validate download token and return the storage key if valid.

        Returns:
            str | None: Storage key if valid, None if unknown or expired
        """
        entry = self._download_tokens.get(token)
        if entry is None:
            return None

        storage_key, expires_at, _ = entry
        if datetime.now(UTC) >= expires_at:
            del self._download_tokens[token]
            return None

        return storage_key
