from src.infrastructure.persistence.repositories.base import BaseRepository
from src.infrastructure.persistence.repositories.document_repo import \
    DocumentRepository
from src.infrastructure.persistence.repositories.share_repo import \
    ShareRepository
from src.infrastructure.persistence.repositories.user_repo import UserRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "ShareRepository",
    "UserRepository",
]
