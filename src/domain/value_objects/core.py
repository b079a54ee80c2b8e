import posixpath
import re
from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class StorageKey:
    """
    Value object for an object-storage key.

    Keys are stored without leading slashes and surrounding whitespace, so
    ``"/documents/u1/a.pdf "`` and ``"documents/u1/a.pdf"`` name the same object.
    """

    value: str

    LEADING_SLASHES: ClassVar[re.Pattern[str]] = re.compile(r"^/+")

    def __post_init__(self):
        if not isinstance(self.value, str):
            raise ValueError("Storage key must be a string")
        normalized = self.LEADING_SLASHES.sub("", self.value.strip()).strip()
        if not normalized:
            raise ValueError("Storage key must not be empty")
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: str | None) -> "StorageKey | None":
        """Build a key from a stored value, or None when it is blank."""
        if raw is None:
            return None
        try:
            return cls(str(raw))
        except ValueError:
            return None

    @classmethod
    def for_upload(cls, prefix: str, uid: str, file_name: str) -> "StorageKey":
        """Key for a freshly uploaded file: ``{prefix}/{uid}/{file_name}``."""
        return cls(f"{prefix}/{uid}/{file_name}")

    @classmethod
    def from_trash(cls, trash_key: str, uid: str, trash_prefix: str = "trash") -> "StorageKey | None":
        """Recover the original key by stripping ``{trash_prefix}/{uid}/``."""
        key = cls.parse(trash_key)
        if key is None:
            return None
        prefix = f"{trash_prefix}/{uid}/"
        if not key.value.startswith(prefix):
            return None
        return cls.parse(key.value[len(prefix):])

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.value)

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.value)

    def to_trash(self, uid: str, trash_prefix: str = "trash") -> "StorageKey":
        """Trash location of this key for owner *uid*."""
        return StorageKey(f"{trash_prefix}/{uid}/{self.value}")

    def with_file_name(self, file_name: str) -> "StorageKey":
        """Same directory, different file name."""
        if not self.directory:
            return StorageKey(file_name)
        return StorageKey(f"{self.directory}/{file_name}")


@dataclass(frozen=True)
class FileName:
    """
    Value object for a user-supplied display name.

    Path separators are replaced with ``_`` so a name can never move an
    object into another directory.
    """

    value: str

    PATH_SEPARATORS: ClassVar[re.Pattern[str]] = re.compile(r"[/\\]+")
    WHITESPACE: ClassVar[re.Pattern[str]] = re.compile(r"\s+")

    def __post_init__(self):
        if not isinstance(self.value, str):
            raise ValueError("File name must be a string")
        sanitized = self.PATH_SEPARATORS.sub("_", self.value).strip()
        if not sanitized:
            raise ValueError("File name cannot be empty after sanitization")
        object.__setattr__(self, "value", sanitized)

    def __str__(self) -> str:
        return self.value

    @classmethod
    def for_upload(cls, original_name: str) -> "FileName":
        """Upload names additionally collapse whitespace runs to ``_``."""
        return cls(cls.WHITESPACE.sub("_", (original_name or "").strip()))

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or ``""``."""
        return posixpath.splitext(self.value)[1].lower()
