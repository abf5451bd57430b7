"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from asset_store.core.config import Settings
from asset_store.storage import (
    ImageUpload,
    PillowCompressor,
    S3AssetStore,
    S3StorageSettings,
    join_key,
)


def client_error(code: str, message: str, operation: str) -> ClientError:
    """Build a botocore error the way the S3 client raises it."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeStreamingBody:
    """Stand-in for aiobotocore's StreamingBody."""

    def __init__(self, data: bytes, *, fail_after_chunks: int | None = None) -> None:
        self._data = data
        self._fail_after_chunks = fail_after_chunks

    async def iter_chunks(self, chunk_size: int = 1024):
        for index, start in enumerate(range(0, len(self._data), chunk_size)):
            if self._fail_after_chunks is not None and index >= self._fail_after_chunks:
                raise ConnectionResetError("connection reset while streaming")
            yield self._data[start : start + chunk_size]


class FakeS3Client:
    """In-memory S3 client covering the calls the asset store makes."""

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.failures: dict[str, Exception] = {}
        self.stream_fail_after_chunks: int | None = None

    def seed(self, key: str, body: bytes = b"seed", content_type: str = "image/jpeg") -> None:
        self.objects[key] = {"Body": body, "ContentType": content_type}

    def _record(self, operation: str, key: str | None = None) -> None:
        self.calls.append((operation, key))
        if operation in self.failures:
            raise self.failures[operation]

    async def put_object(self, **kwargs: Any) -> dict[str, Any]:
        self._record("put_object", kwargs["Key"])
        self.objects[kwargs["Key"]] = kwargs
        return {"ETag": '"etag"'}

    async def head_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._record("head_object", Key)
        if Key not in self.objects:
            raise client_error("404", "Not Found", "HeadObject")
        stored = self.objects[Key]
        return {"ContentType": stored["ContentType"], "ContentLength": len(stored["Body"])}

    async def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._record("get_object", Key)
        if Key not in self.objects:
            raise client_error("NoSuchKey", "The specified key does not exist.", "GetObject")
        stored = self.objects[Key]
        body = stored["Body"]
        headers = {
            "content-type": stored["ContentType"],
            "content-length": str(len(body)),
            "cache-control": stored.get("CacheControl", "max-age=60"),
            "etag": '"etag"',
            "transfer-encoding": "chunked",
            "server": "AmazonS3",
            "date": "Mon, 01 Jan 2024 00:00:00 GMT",
            "x-amz-request-id": "REQ123",
        }
        return {
            "Body": FakeStreamingBody(body, fail_after_chunks=self.stream_fail_after_chunks),
            "ContentType": stored["ContentType"],
            "ResponseMetadata": {"HTTPStatusCode": 200, "HTTPHeaders": headers},
        }

    async def delete_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._record("delete_object", Key)
        self.objects.pop(Key, None)
        return {}

    async def head_bucket(self, *, Bucket: str) -> dict[str, Any]:
        self._record("head_bucket")
        return {}


class _ClientContext:
    def __init__(self, client: FakeS3Client) -> None:
        self._client = client

    async def __aenter__(self) -> FakeS3Client:
        return self._client

    async def __aexit__(self, *args: Any) -> None:
        return None


class FakeSession:
    """aioboto3.Session stand-in handing out a shared fake client."""

    def __init__(self, client: FakeS3Client) -> None:
        self._client = client
        self.client_kwargs: list[dict[str, Any]] = []

    def client(self, service_name: str, **kwargs: Any) -> _ClientContext:
        self.client_kwargs.append({"service_name": service_name, **kwargs})
        return _ClientContext(self._client)


@pytest.fixture
def fake_s3() -> FakeS3Client:
    """Provide an empty in-memory bucket."""
    return FakeS3Client()


@pytest.fixture
def fake_session(fake_s3: FakeS3Client) -> FakeSession:
    return FakeSession(fake_s3)


@pytest.fixture
def storage_settings(tmp_path: Path) -> S3StorageSettings:
    """Create S3 settings for testing."""
    return S3StorageSettings(
        access_key_id="test_key",
        secret_access_key="test_secret",
        bucket="my-bucket",
        region="us-east-1",
        path_prefix="/images",
        temp_dir=tmp_path / "compressed",
    )


@pytest.fixture
def store(storage_settings: S3StorageSettings, fake_session: FakeSession) -> S3AssetStore:
    """Create an asset store writing into the fake bucket under a fixed month."""
    return S3AssetStore(
        storage_settings,
        session=fake_session,  # type: ignore[arg-type]
        get_target_dir=lambda base: join_key(base, "2024", "01"),
    )


@pytest.fixture
def jpeg_path(tmp_path: Path) -> Path:
    """Write a small noisy JPEG to disk."""
    path = tmp_path / "source" / "cat.jpg"
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.effect_noise((64, 64), 80).convert("RGB")
    image.save(path, format="JPEG", quality=100)
    return path


@pytest.fixture
def png_path(tmp_path: Path) -> Path:
    """Write a small RGBA PNG to disk."""
    path = tmp_path / "source" / "logo.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.effect_noise((64, 64), 60).convert("RGBA")
    image.save(path, format="PNG")
    return path


@pytest.fixture
def jpeg_upload(jpeg_path: Path) -> ImageUpload:
    return ImageUpload(path=str(jpeg_path), name="cat.jpg", content_type="image/jpeg")


@pytest.fixture
def compressor() -> PillowCompressor:
    return PillowCompressor((65, 80))


@pytest.fixture
def app_settings(tmp_path: Path) -> Settings:
    """Provide test application settings."""
    return Settings(
        s3_access_key_id="test_key",
        s3_secret_access_key="test_secret",
        s3_bucket="my-bucket",
        s3_region="eu-west-1",
        s3_path_prefix="/images",
        serve_mount_path="/content/images",
        max_upload_size_mb=1,
        debug=True,
    )
