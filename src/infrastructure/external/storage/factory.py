"""Storage factory selecting the object storage backend from settings."""

from src.application.interfaces.storage import IStorageService
from src.infrastructure.config.settings import Settings
from src.infrastructure.external.storage.local_storage import \
    LocalStorageService
from src.infrastructure.external.storage.s3_storage import S3StorageService
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class StorageFactory:
    """Builds the configured ``IStorageService`` implementation."""

    @staticmethod
    def create_storage_service(settings: Settings) -> IStorageService:
        """
        Create storage service based on configuration.

        Raises:
            ValueError: If the backend is unknown or S3 has no bucket
        """
        backend = settings.storage_backend.lower()

        if backend == "local":
            logger.info("Using local storage backend at %s", settings.storage_root)
            return LocalStorageService(
                storage_root=settings.storage_root,
                base_url=settings.storage_base_url,
            )

        if backend == "s3":
            if not settings.s3_bucket:
                raise ValueError("S3_BUCKET is required when STORAGE_BACKEND=s3")
            logger.info("Using S3 storage backend, bucket=%s", settings.s3_bucket)
            return S3StorageService(
                bucket=settings.s3_bucket,
                region=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
                access_key=settings.s3_access_key,
                secret_key=settings.s3_secret_key,
            )

        raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")
