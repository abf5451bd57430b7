"""Amazon S3 asset store implementation."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aioboto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .compression import ImageCompressor, PillowCompressor
from .exceptions import CompressionError, ReadError, UploadError
from .paths import (
    DEFAULT_MAX_ATTEMPTS,
    KeyResolver,
    dated_target_dir,
    derive_asset_host,
    join_key,
    strip_leading_slash,
)
from .proxy import AssetProxy

if TYPE_CHECKING:
    from litestar.types import ASGIApp
    from types_aiobotocore_s3 import S3Client

    from .base import MiddlewareFactory, TargetDirResolver
    from .schemas import ImageUpload

logger = logging.getLogger(__name__)

# Constants
CACHE_MAX_AGE = 30 * 24 * 60 * 60  # 30 days
PUBLIC_READ_ACL = "public-read"
NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


def is_not_found(error: ClientError) -> bool:
    """Whether a botocore error means the object does not exist."""
    return error.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


@dataclass(frozen=True)
class S3StorageSettings:
    """S3 bucket configuration."""

    access_key_id: str
    secret_access_key: str
    bucket: str
    region: str = "us-east-1"
    asset_host: str | None = None
    path_prefix: str = ""
    endpoint_url: str | None = None  # S3-compatible stores only
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "asset-store")

    def __post_init__(self) -> None:
        object.__setattr__(self, "path_prefix", strip_leading_slash(self.path_prefix or ""))

    @property
    def host(self) -> str:
        """Public URL base that stored keys are appended to."""
        if self.asset_host:
            return self.asset_host.rstrip("/")
        return derive_asset_host(self.bucket, self.region)


@dataclass
class StoredObject:
    """An object opened for streaming."""

    key: str
    headers: dict[str, str]
    body: Any  # aiobotocore StreamingBody


class S3AssetStore:
    """S3 asset store.

    Compresses uploads, stores them under collision-free keys with public
    read access, and streams them back through :class:`AssetProxy`. Every
    operation opens its own client, so one instance can be shared by
    concurrent requests.
    """

    def __init__(
        self,
        settings: S3StorageSettings,
        *,
        compressor: ImageCompressor | None = None,
        get_target_dir: TargetDirResolver | None = None,
        session: aioboto3.Session | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        """Initialize S3 asset store.

        Args:
            settings: Bucket configuration.
            compressor: Image compressor. Defaults to :class:`PillowCompressor`.
            get_target_dir: Maps the path prefix to the default upload
                directory. Defaults to ``{prefix}/YYYY/MM``.
            session: aioboto3 session to create clients from.
            max_attempts: Upper bound on unique-name candidates per save.
        """
        self._settings = settings
        self._compressor = compressor or PillowCompressor()
        self._target_dir = get_target_dir or dated_target_dir
        self._session = session or aioboto3.Session()
        self._client_config = Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=10,
            read_timeout=30,
        )
        self._resolver = KeyResolver(self._object_exists, max_attempts=max_attempts)

    @property
    def settings(self) -> S3StorageSettings:
        return self._settings

    @property
    def host(self) -> str:
        return self._settings.host

    @asynccontextmanager
    async def _get_client(self) -> AsyncIterator[S3Client]:
        """Get S3 client with context management.

        Yields:
            Configured S3 client.
        """
        async with self._session.client(  # type: ignore[reportGeneralTypeIssues]
            "s3",
            region_name=self._settings.region,
            endpoint_url=self._settings.endpoint_url,
            aws_access_key_id=self._settings.access_key_id,
            aws_secret_access_key=self._settings.secret_access_key,
            config=self._client_config,
        ) as client:
            yield client

    def get_target_dir(self, base: str = "") -> str:
        return self._target_dir(base)

    def _resolve_directory(self, target_dir: str | None) -> str:
        if target_dir:
            return join_key(self._settings.path_prefix, target_dir)
        return self.get_target_dir(self._settings.path_prefix)

    # -------------------------------------------------------------------------
    # Save
    # -------------------------------------------------------------------------

    async def save(self, image: ImageUpload, target_dir: str | None = None) -> str:
        """Compress an image and upload it under a unique key."""
        directory = self._resolve_directory(target_dir)
        compressed = await self._compress(Path(image.path))

        key: str | None = None
        try:
            resolved, body = await asyncio.gather(
                self._resolver.resolve_unique_key(image.name, directory),
                self._read_artifact(compressed),
                return_exceptions=True,
            )
            if isinstance(resolved, str):
                key = resolved
            for result in (resolved, body):
                if isinstance(result, BaseException):
                    raise result
            await self._upload(key, body, image.content_type)
            url = f"{self._settings.host}/{key}"
        finally:
            if key is not None:
                self._resolver.release(key)
            self._discard(compressed)

        return url

    async def _compress(self, source: Path) -> Path:
        try:
            return await self._compressor.compress(source, self._settings.temp_dir)
        except CompressionError:
            raise
        except Exception as e:
            logger.error(f"Compression failed for {source.name}: {e}")
            raise CompressionError(f"Failed to compress image: {e}", cause=e) from e

    async def _read_artifact(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error(f"Failed to read compressed image {path}: {e}")
            raise ReadError(f"Failed to read compressed image: {e}", cause=e) from e

    async def _upload(self, key: str, body: bytes, content_type: str) -> None:
        try:
            async with self._get_client() as client:
                await client.put_object(
                    ACL=PUBLIC_READ_ACL,
                    Body=body,
                    Bucket=self._settings.bucket,
                    CacheControl=f"max-age={CACHE_MAX_AGE}",
                    ContentType=content_type,
                    Key=key,
                )
        except ClientError as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise UploadError(
                f"Failed to upload file: {e.response['Error']['Message']}",
                cause=e,
            ) from e
        except Exception as e:
            logger.error(f"Unexpected error uploading {key} to S3: {e}")
            raise UploadError(f"Upload failed: {e}", cause=e) from e

        logger.info(f"Uploaded {key} to S3 ({len(body)} bytes)")

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove compressed image {path}: {e}")

    # -------------------------------------------------------------------------
    # Existence and deletion
    # -------------------------------------------------------------------------

    async def _object_exists(self, key: str) -> bool:
        """Strict existence check used for key resolution.

        Raises:
            ClientError: For any failure other than a missing object.
        """
        try:
            async with self._get_client() as client:
                await client.head_object(Bucket=self._settings.bucket, Key=key)
                return True
        except ClientError as e:
            if is_not_found(e):
                return False
            raise

    async def exists(self, file_name: str) -> bool:
        """Check if an object exists.

        Missing objects and transport failures both yield False.
        """
        key = strip_leading_slash(file_name)
        try:
            async with self._get_client() as client:
                await client.head_object(Bucket=self._settings.bucket, Key=key)
                return True
        except Exception as e:
            logger.debug(f"S3 exists check negative for {key}: {e}")
            return False

    async def delete(self, file_name: str, target_dir: str | None = None) -> bool:
        """Delete an object. Any failure, including a missing object, yields False."""
        key = join_key(self._resolve_directory(target_dir), file_name)
        try:
            async with self._get_client() as client:
                # S3 reports success for missing keys, so check first
                await client.head_object(Bucket=self._settings.bucket, Key=key)
                await client.delete_object(Bucket=self._settings.bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                logger.debug(f"Nothing to delete at {key}")
            else:
                logger.warning(f"S3 delete failed for {key}: {e}")
            return False
        except Exception as e:
            logger.warning(f"Unexpected error deleting {key} from S3: {e}")
            return False

        logger.info(f"Deleted {key} from S3")
        return True

    # -------------------------------------------------------------------------
    # Serving
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def open_object(self, key: str) -> AsyncIterator[StoredObject]:
        """Open an object for streaming.

        Yields once the response headers are in; the body is read lazily.
        """
        async with self._get_client() as client:
            response = await client.get_object(Bucket=self._settings.bucket, Key=key)
            headers = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
            yield StoredObject(key=key, headers=dict(headers), body=response["Body"])

    def serve(self, mount_path: str = "") -> MiddlewareFactory:
        """Build middleware that proxies reads under ``mount_path`` to S3."""

        def middleware(app: ASGIApp) -> ASGIApp:
            return AssetProxy(app, self, mount_path=mount_path)

        return middleware

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Check if the bucket is accessible."""
        try:
            async with self._get_client() as client:
                await client.head_bucket(Bucket=self._settings.bucket)
                return True
        except Exception as e:
            logger.warning(f"S3 health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close any open connections.

        Note: aioboto3 manages connections per-context, so this is a no-op.
        """
