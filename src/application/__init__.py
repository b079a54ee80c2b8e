"""
Application layer - Application Business Rules.

This layer contains application-specific business rules, including:
- Interfaces (ports) for infrastructure dependencies
- Use cases that orchestrate domain logic
- Application services
"""

from src.application.interfaces import (IDocumentRepository, IShareRepository,
                                        IStorageService, IUserRepository)
from src.application.services import OpenedDocument, ViewerService
from src.application.use_cases import (BatchCoordinator,
                                       DocumentLifecycleEngine,
                                       DocumentService,
                                       ShareAuthorizationEngine)

__all__ = [
    # Interfaces
    "IDocumentRepository",
    "IShareRepository",
    "IUserRepository",
    "IStorageService",
    # Services
    "OpenedDocument",
    "ViewerService",
    # Use Cases
    "BatchCoordinator",
    "DocumentLifecycleEngine",
    "DocumentService",
    "ShareAuthorizationEngine",
]
