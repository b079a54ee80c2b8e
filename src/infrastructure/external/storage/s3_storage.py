"""
S3-compatible storage implementation (AWS S3, MinIO, DigitalOcean Spaces).

Features:
- Server-side encryption (AES256) on every write
- Server-side copy for trash/restore/rename moves
- Batched deletes (missing keys are ignored)
- Pre-signed URLs with expiration, optionally as attachment downloads

Compatible with:
- AWS S3
- MinIO
- DigitalOcean Spaces
- Any S3-compatible storage
"""

from datetime import timedelta
from urllib.parse import quote

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from src.infrastructure.exceptions import (StorageCopyError,
                                           StorageDeleteError,
                                           StorageNotFoundError,
                                           StorageSignError,
                                           StorageUploadError)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3StorageService:
    """
    S3-compatible object storage with server-side copies and pre-signed URLs.

    Object Keys:
    documents/{uid}/{file_name}
    trash/{uid}/documents/{uid}/{file_name}
    """

    # S3 DeleteObjects accepts at most 1000 keys per request
    DELETE_BATCH_SIZE = 1000

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
    ):
        """
        Initialize S3 storage service.

        Args:
            bucket: S3 bucket name
            region: AWS region (default: us-east-1)
            endpoint_url: Custom endpoint for MinIO/DigitalOcean (optional)
            access_key: AWS access key (optional, uses IAM role if not provided)
            secret_key: AWS secret key (optional, uses IAM role if not provided)
        """
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url

        self.session = aioboto3.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    def _get_client_config(self):
        """Get boto3 client configuration"""
        config = {}
        if self.endpoint_url:
            config["endpoint_url"] = self.endpoint_url
        return config

    async def put(self, storage_key: str, data: bytes, content_type: str) -> None:
        """
        Store an object, replacing whatever lived at the key.

        Raises:
            StorageUploadError: If the write fails
        """
        try:
            async with self.session.client("s3", **self._get_client_config()) as s3:
                await s3.put_object(
                    Bucket=self.bucket,
                    Key=storage_key,
                    Body=data,
                    ContentType=content_type,
                    ServerSideEncryption="AES256",
                )
        except (ClientError, BotoCoreError) as e:
            raise StorageUploadError(storage_key, str(e)) from e

    async def copy(self, source_key: str, target_key: str) -> None:
        """
        Server-side copy. The source stays in place.

        Raises:
            StorageCopyError: If the source is missing or the copy fails
        """
        try:
            async with self.session.client("s3", **self._get_client_config()) as s3:
                await s3.copy_object(
                    Bucket=self.bucket,
                    Key=target_key,
                    CopySource={"Bucket": self.bucket, "Key": source_key},
                    ServerSideEncryption="AES256",
                    MetadataDirective="COPY",
                )
        except (ClientError, BotoCoreError) as e:
            raise StorageCopyError(source_key, target_key, str(e)) from e

    async def remove(self, storage_keys: list[str]) -> None:
        """
        Delete objects in batches. Keys that do not exist are skipped by S3.

        Raises:
            StorageDeleteError: If the request fails or S3 reports per-key errors
        """
        keys = [key for key in dict.fromkeys(storage_keys) if key]
        if not keys:
            return

        try:
            async with self.session.client("s3", **self._get_client_config()) as s3:
                for start in range(0, len(keys), self.DELETE_BATCH_SIZE):
                    chunk = keys[start : start + self.DELETE_BATCH_SIZE]
                    response = await s3.delete_objects(
                        Bucket=self.bucket,
                        Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
                    )
                    errors = [
                        error
                        for error in response.get("Errors", [])
                        if error.get("Code") not in NOT_FOUND_CODES
                    ]
                    if errors:
                        raise StorageDeleteError(
                            [error.get("Key", "") for error in errors],
                            "; ".join(error.get("Message", "") for error in errors),
                        )
        except (ClientError, BotoCoreError) as e:
            raise StorageDeleteError(keys, str(e)) from e

    async def signed_url(
        self,
        storage_key: str,
        ttl: timedelta,
        download_name: str | None = None,
    ) -> str:
        """
        Generate a pre-signed GET URL after confirming the object exists.

        Args:
            storage_key: Object key
            ttl: URL expiration time
            download_name: Sets Content-Disposition to attachment when given

        Raises:
            StorageNotFoundError: If object doesn't exist
            StorageSignError: If the URL cannot be generated
        """
        try:
            async with self.session.client("s3", **self._get_client_config()) as s3:
                try:
                    await s3.head_object(Bucket=self.bucket, Key=storage_key)
                except ClientError as e:
                    if _error_code(e) in NOT_FOUND_CODES:
                        raise StorageNotFoundError(storage_key) from e
                    raise

                params = {"Bucket": self.bucket, "Key": storage_key}
                if download_name:
                    params["ResponseContentDisposition"] = (
                        f"attachment; filename*=UTF-8''{quote(download_name)}"
                    )

                url: str = await s3.generate_presigned_url(
                    "get_object",
                    Params=params,
                    ExpiresIn=int(ttl.total_seconds()),
                )
                return url

        except StorageNotFoundError:
            raise
        except (ClientError, BotoCoreError) as e:
            raise StorageSignError(storage_key, str(e)) from e
