"""Domain value objects."""

from src.domain.value_objects.core import FileName, StorageKey

__all__ = [
    "FileName",
    "StorageKey",
]
