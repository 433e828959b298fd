"""Object store client for the media slot bucket (Cloudflare R2 via S3 API).

Provides:
- Listing, upload, delete and parallel clear of slot objects
- Presigned PUT URLs for direct browser uploads
- Public URL construction and redirect-following public downloads
- One-time bucket CORS configuration

boto3 is blocking, so every call runs in a worker thread via
asyncio.to_thread. Idempotent calls (list, delete) are retried with
tenacity; uploads are not.

Usage:
    from mediaslot.services.object_store import get_object_store

    store = get_object_store()
    objects = await store.list_objects()
    await store.upload_file(path, "video.mp4", "video/mp4")
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import boto3
import httpx
from boto3.exceptions import Boto3Error
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from mediaslot.config import StorageConfig, TranscodeConfig, settings
from mediaslot.errors import StoreError
from mediaslot.schemas.slot import StoredObject, public_object_url
from mediaslot.services.downloader import download_to_file

logger = logging.getLogger(__name__)

_BOTO_ERRORS = (BotoCoreError, ClientError)

CORS_RULES = [
    {
        "AllowedOrigins": ["*"],
        "AllowedMethods": ["GET", "PUT", "HEAD"],
        "AllowedHeaders": ["*"],
        "ExposeHeaders": ["ETag", "Content-Length"],
        "MaxAgeSeconds": 3600,
    }
]


def build_s3_client(config: StorageConfig):
    """Create a boto3 S3 client pointed at the configured endpoint."""
    return boto3.client(
        "s3",
        endpoint_url=config.resolved_endpoint,
        region_name=config.region,
        aws_access_key_id=config.access_key_id or None,
        aws_secret_access_key=config.secret_access_key or None,
        config=Config(
            signature_version="s3v4",
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        ),
    )


class ObjectStore:
    """Async facade over a single S3-compatible bucket.

    Args:
        bucket: Bucket name
        public_url: Public base URL objects are served from
        s3_client: boto3 S3 client (see build_s3_client)
        http_client: Optional httpx client used for public downloads
        retry_attempts: Attempts for idempotent calls (list, delete)
    """

    def __init__(
        self,
        bucket: str,
        public_url: str,
        s3_client,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_attempts: int = 3,
    ):
        self.bucket = bucket
        self.public_base_url = public_url.rstrip("/")
        self.s3 = s3_client
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self.retry_attempts = retry_attempts

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(follow_redirects=False)
            self._owns_http_client = True
        return self._http_client

    def _retrying(self):
        return retry(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception_type(_BOTO_ERRORS),
            reraise=True,
        )

    def public_url(self, key: str) -> str:
        """Public URL for an object key."""
        return public_object_url(self.public_base_url, key)

    async def list_objects(self) -> list[StoredObject]:
        """List every object in the bucket.

        Returns:
            StoredObject per key, in the order the store lists them

        Raises:
            StoreError: If the listing fails after retries
        """

        @self._retrying()
        def _list() -> list[StoredObject]:
            objects: list[StoredObject] = []
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket):
                for item in page.get("Contents", []):
                    objects.append(
                        StoredObject(
                            key=item["Key"],
                            size=item.get("Size", 0),
                            last_modified=item.get("LastModified"),
                        )
                    )
            return objects

        try:
            objects = await asyncio.to_thread(_list)
        except _BOTO_ERRORS as e:
            raise StoreError(f"Failed to list objects in {self.bucket}: {e}") from e

        logger.debug("Listed %d objects in %s", len(objects), self.bucket)
        return objects

    async def upload_file(self, path: Path, key: str, content_type: str) -> None:
        """Upload a local file under key.

        Raises:
            StoreError: If the upload fails or the file cannot be read
        """
        logger.info("Uploading %s -> %s/%s (%s)", path, self.bucket, key, content_type)
        try:
            await asyncio.to_thread(
                self.s3.upload_file,
                str(path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (*_BOTO_ERRORS, Boto3Error, OSError) as e:
            # The transfer manager re-raises ClientError as S3UploadFailedError
            raise StoreError(f"Failed to upload {key}: {e}") from e

    async def delete_object(self, key: str) -> None:
        """Delete a single object.

        Raises:
            StoreError: If the delete fails after retries
        """

        @self._retrying()
        def _delete() -> None:
            self.s3.delete_object(Bucket=self.bucket, Key=key)

        logger.info("Deleting %s/%s", self.bucket, key)
        try:
            await asyncio.to_thread(_delete)
        except _BOTO_ERRORS as e:
            raise StoreError(f"Failed to delete {key}: {e}") from e

    async def delete_all(self) -> list[str]:
        """Delete every object in the bucket, in parallel.

        Returns:
            Keys that were deleted

        Raises:
            StoreError: If listing or any delete fails
        """
        objects = await self.list_objects()
        keys = [obj.key for obj in objects]
        await asyncio.gather(*(self.delete_object(key) for key in keys))
        logger.info("Deleted %d objects from %s", len(keys), self.bucket)
        return keys

    async def presigned_upload_url(
        self, key: str, content_type: str, expires_in: int = 3600
    ) -> str:
        """Presigned PUT URL for a direct client upload under key."""
        try:
            return await asyncio.to_thread(
                self.s3.generate_presigned_url,
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )
        except _BOTO_ERRORS as e:
            raise StoreError(f"Failed to presign upload for {key}: {e}") from e

    async def configure_cors(self) -> None:
        """Apply the bucket CORS rules that allow browser uploads and playback."""
        try:
            await asyncio.to_thread(
                self.s3.put_bucket_cors,
                Bucket=self.bucket,
                CORSConfiguration={"CORSRules": CORS_RULES},
            )
        except _BOTO_ERRORS as e:
            raise StoreError(f"Failed to configure CORS on {self.bucket}: {e}") from e
        logger.info("CORS configuration applied to bucket %s", self.bucket)

    async def fetch_public(
        self, key: str, dest: Path, config: Optional[TranscodeConfig] = None
    ) -> int:
        """Download an object through its public URL into dest.

        Returns:
            Number of bytes written

        Raises:
            DownloadError: See download_to_file
        """
        cfg = config or settings.transcode
        return await download_to_file(
            self.public_url(key),
            dest,
            client=self.http_client,
            max_redirects=cfg.max_redirects,
            timeout=cfg.download_timeout_seconds,
            chunk_size=cfg.download_chunk_size,
        )

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_http_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None


# ---------------------------------------------------------------------------
# Module-level lazy singleton
# ---------------------------------------------------------------------------

_object_store: Optional[ObjectStore] = None


def get_object_store() -> ObjectStore:
    """Get or create the singleton ObjectStore from settings.storage."""
    global _object_store

    if _object_store is None:
        cfg = settings.storage
        if not cfg.bucket:
            raise ValueError(
                "Object store bucket not configured. Set MEDIASLOT_STORAGE__BUCKET "
                "or storage.bucket in config.yaml."
            )
        _object_store = ObjectStore(cfg.bucket, cfg.public_url, build_s3_client(cfg))

    return _object_store


async def close_object_store() -> None:
    """Close the singleton ObjectStore (for app shutdown)."""
    global _object_store
    if _object_store is not None:
        await _object_store.close()
        _object_store = None
