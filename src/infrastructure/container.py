"""
Service wiring for the Drive Docs core.

Builds the engines over one metadata session and the process-wide storage
backend, and runs process startup/shutdown (logging, tracing, engine).
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.application.interfaces.storage import IStorageService
from src.application.services.viewer_service import ViewerService
from src.application.use_cases.documents.batch import BatchCoordinator
from src.application.use_cases.documents.document_operations import \
    DocumentService
from src.application.use_cases.documents.lifecycle import \
    DocumentLifecycleEngine
from src.application.use_cases.sharing.share_authorization import \
    ShareAuthorizationEngine
from src.infrastructure.config.settings import Settings, get_settings
from src.infrastructure.external.storage.factory import StorageFactory
from src.infrastructure.persistence.database import get_engine
from src.infrastructure.persistence.repositories import (DocumentRepository,
                                                         ShareRepository,
                                                         UserRepository)
from src.shared.telemetry.logging import get_logger, setup_logging
from src.shared.telemetry.telemetry import configure_telemetry, get_telemetry

logger = get_logger(__name__)

# Global storage backend (singleton)
_storage_service: IStorageService | None = None


def get_storage_service(settings: Settings | None = None) -> IStorageService:
    """Storage backend shared by every request"""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageFactory.create_storage_service(settings or get_settings())
    return _storage_service


def set_storage_service(storage_service: IStorageService | None):
    """Replace the global storage backend (startup or tests)"""
    global _storage_service
    _storage_service = storage_service


@dataclass
class DriveServices:
    documents: DocumentService
    lifecycle: DocumentLifecycleEngine
    batch: BatchCoordinator
    sharing: ShareAuthorizationEngine


def build_services(
    db: AsyncSession,
    storage: IStorageService | None = None,
    settings: Settings | None = None,
    *,
    autocommit: bool = True,
) -> DriveServices:
    """
    Wire the engines over one session.

    Use ``autocommit=False`` with a session from ``get_db_transactional()``,
    where the surrounding transaction commits.
    """
    settings = settings or get_settings()
    storage = storage or get_storage_service(settings)

    document_repo = DocumentRepository(db, autocommit=autocommit)
    share_repo = ShareRepository(db, autocommit=autocommit)
    user_repo = UserRepository(db, autocommit=autocommit)
    viewers = ViewerService(settings.office_viewer_base_url)

    lifecycle = DocumentLifecycleEngine(storage, document_repo, settings)
    sharing = ShareAuthorizationEngine(
        storage, document_repo, share_repo, user_repo, viewers, settings
    )
    return DriveServices(
        documents=DocumentService(storage, document_repo, lifecycle, sharing, viewers, settings),
        lifecycle=lifecycle,
        batch=BatchCoordinator(lifecycle, document_repo, settings),
        sharing=sharing,
    )


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[Settings]:
    """Process startup and cleanup"""
    settings = settings or get_settings()
    setup_logging(settings)

    telemetry = configure_telemetry(settings)
    engine = get_engine()
    telemetry.instrument_sqlalchemy(engine)
    get_storage_service(settings)
    logger.info("%s %s started", settings.app_name, settings.app_version)

    try:
        yield settings
    finally:
        telemetry_instance = get_telemetry()
        if telemetry_instance:
            telemetry_instance.shutdown()
        await engine.dispose()
        logger.info("%s stopped", settings.app_name)
