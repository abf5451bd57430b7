"""Asset API routes.

Exposes the asset store operations to the host: uploading images,
checking for stored objects and deleting them. Stored images are read
back through the serve proxy mounted by the application.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import msgspec
from litestar import Controller, Response, delete, get, post
from litestar.datastructures import UploadFile
from litestar.enums import RequestEncodingType
from litestar.params import Body, Parameter
from litestar.status_codes import (
    HTTP_200_OK,
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_502_BAD_GATEWAY,
)

from asset_store.core.config import Settings
from asset_store.storage import ImageFormat, ImageUpload, S3AssetStore, StorageError

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Response schemas
# -----------------------------------------------------------------------------


class SaveResponse(msgspec.Struct, kw_only=True):
    """Response for a stored image."""

    url: str


class ExistsResponse(msgspec.Struct, kw_only=True):
    """Response for an existence check."""

    name: str
    exists: bool


class DeleteResponse(msgspec.Struct, kw_only=True):
    """Response for a delete request."""

    name: str
    deleted: bool


class HealthResponse(msgspec.Struct, kw_only=True):
    """Health check response."""

    status: str
    storage_connected: bool


class ErrorResponse(msgspec.Struct, kw_only=True):
    """Error response."""

    error: str
    detail: str | None = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _write_temp_upload(data: bytes, suffix: str) -> Path:
    with tempfile.NamedTemporaryFile(prefix="upload-", suffix=suffix, delete=False) as handle:
        handle.write(data)
    return Path(handle.name)


# -----------------------------------------------------------------------------
# Controllers
# -----------------------------------------------------------------------------


class HealthController(Controller):
    """Health check endpoints."""

    path = "/health"
    tags: Sequence[str] | None = ["Health"]

    @get("/")
    async def health_check(self, asset_store: S3AssetStore) -> HealthResponse:
        """Check API and bucket connectivity."""
        connected = await asset_store.health_check()

        return HealthResponse(
            status="healthy" if connected else "unhealthy",
            storage_connected=connected,
        )


class AssetController(Controller):
    """Image asset endpoints backed by the asset store."""

    path = "/api/v1/assets"
    tags: Sequence[str] | None = ["Assets"]

    @post("/")
    async def save_asset(
        self,
        asset_store: S3AssetStore,
        settings: Settings,
        data: Annotated[UploadFile, Body(media_type=RequestEncodingType.MULTI_PART)],
        directory: Annotated[
            str | None,
            Parameter(description="Directory below the path prefix (defaults to YYYY/MM)"),
        ] = None,
    ) -> Response[SaveResponse | ErrorResponse]:
        """Compress and store an image.

        Accepts JPEG, PNG, GIF, WebP and SVG images. Returns the public URL
        of the stored image.
        """
        content_type = data.content_type or "application/octet-stream"
        try:
            image_format = ImageFormat.from_content_type(content_type)
        except ValueError as e:
            return Response(
                content=ErrorResponse(error="Invalid file type", detail=str(e)),
                status_code=HTTP_400_BAD_REQUEST,
            )

        body = await data.read()

        if len(body) > settings.max_upload_size_bytes:
            return Response(
                content=ErrorResponse(
                    error="File too large",
                    detail=f"Maximum size: {settings.max_upload_size_mb}MB",
                ),
                status_code=HTTP_400_BAD_REQUEST,
            )

        if len(body) == 0:
            return Response(
                content=ErrorResponse(error="Empty file"),
                status_code=HTTP_400_BAD_REQUEST,
            )

        filename = data.filename or f"upload.{image_format.value}"
        source = await asyncio.to_thread(_write_temp_upload, body, Path(filename).suffix)

        try:
            url = await asset_store.save(
                ImageUpload(
                    path=str(source),
                    name=filename,
                    content_type=image_format.content_type,
                ),
                directory,
            )
        except StorageError as e:
            logger.error(f"Saving {filename} failed: {e}")
            return Response(
                content=ErrorResponse(error="Upload failed", detail=str(e)),
                status_code=HTTP_502_BAD_GATEWAY,
            )
        finally:
            source.unlink(missing_ok=True)

        return Response(content=SaveResponse(url=url), status_code=HTTP_201_CREATED)

    @get("/exists")
    async def asset_exists(
        self,
        asset_store: S3AssetStore,
        name: Annotated[str, Parameter(description="Key of the stored image")],
    ) -> ExistsResponse:
        """Check whether an image is stored under the given key."""
        return ExistsResponse(name=name, exists=await asset_store.exists(name))

    @delete("/", status_code=HTTP_200_OK)
    async def delete_asset(
        self,
        asset_store: S3AssetStore,
        name: Annotated[str, Parameter(description="File name of the stored image")],
        directory: Annotated[
            str | None,
            Parameter(description="Directory below the path prefix"),
        ] = None,
    ) -> DeleteResponse:
        """Delete a stored image.

        Deleting a missing image reports ``deleted: false``.
        """
        deleted = await asset_store.delete(name, directory)
        return DeleteResponse(name=name, deleted=deleted)
