from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "DriveDocs"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str = ""  # Loaded from environment, validated in model_validator
    database_echo: bool = False

    # Storage
    storage_backend: str = "local"  # Options: "local", "s3"
    storage_root: str = "/var/drive-docs/storage"  # For local backend
    storage_base_url: str | None = None  # Base URL for download links (e.g., "https://api.example.com")
    s3_bucket: str | None = None  # Required for S3 backend
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None  # For MinIO/LocalStack
    s3_access_key: str | None = None  # Optional, uses IAM role if not provided
    s3_secret_key: str | None = None  # Optional, uses IAM role if not provided

    # Object key layout
    documents_prefix: str = "documents"
    trash_prefix: str = "trash"

    # Signed URL lifetimes (seconds)
    probe_url_ttl_seconds: int = 30
    open_url_ttl_seconds: int = 60 * 10
    share_url_ttl_seconds: int = 60 * 60 * 24

    # Sharing
    share_link_base_path: str = "/api/drive/docs/share"
    office_viewer_base_url: str = "https://docs.google.com/gview"

    # Uploads
    max_upload_files: int = 2
    max_upload_size: int = 100 * 1024 * 1024  # 100MB default

    # Bounded wait on every storage / metadata call
    adapter_timeout_seconds: float = 30.0

    # OpenTelemetry Distributed Tracing
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"  # Options: "console", "otlp", "none"
    telemetry_otlp_endpoint: str | None = None  # e.g., "http://localhost:4317"
    telemetry_sample_rate: float = 1.0  # Sampling rate (0.0-1.0, 1.0 = 100%)
    telemetry_environment: str = "development"  # deployment environment tag

    @model_validator(mode="after")
    def validate_storage_config(self) -> "Settings":
        """Validate storage backend and required configuration"""
        if not self.database_url:
            raise ValueError("DATABASE_URL is required. Set in environment or .env file.")

        if self.storage_backend == "s3":
            if not self.s3_bucket:
                raise ValueError(
                    "s3_bucket is required when storage_backend is 's3'. "
                    "Set S3_BUCKET environment variable or update .env file."
                )
        elif self.storage_backend not in ("local", "s3"):
            raise ValueError(
                f"Invalid storage_backend '{self.storage_backend}'. "
                f"Must be one of: 'local', 's3'"
            )

        if self.trash_prefix.strip("/") == self.documents_prefix.strip("/"):
            raise ValueError("trash_prefix and documents_prefix must differ")
        if self.adapter_timeout_seconds <= 0:
            raise ValueError("adapter_timeout_seconds must be positive")
        return self

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="allow", case_sensitive=False
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
