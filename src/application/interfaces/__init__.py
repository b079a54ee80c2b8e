"""
Application layer interfaces (ports).

These protocols define the contracts between the application layer
and the infrastructure layer, following the Dependency Inversion Principle.
"""

from src.application.interfaces.repositories import (IDocumentRepository,
                                                     IShareRepository,
                                                     IUserRepository)
from src.application.interfaces.storage import IStorageService

__all__ = [
    # Repository interfaces
    "IDocumentRepository",
    "IShareRepository",
    "IUserRepository",
    # Storage interface
    "IStorageService",
]
