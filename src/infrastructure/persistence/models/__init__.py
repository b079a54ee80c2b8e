from src.infrastructure.persistence.models.document import Document
from src.infrastructure.persistence.models.document_share import DocumentShare
from src.infrastructure.persistence.models.user import User

__all__ = [
    "Document",
    "DocumentShare",
    "User",
]
