"""Domain entities."""

from src.domain.entities.document import DocumentEntity
from src.domain.entities.share import ShareGrantEntity, UserEntity

__all__ = [
    "DocumentEntity",
    "ShareGrantEntity",
    "UserEntity",
]
