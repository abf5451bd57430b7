"""Asset store protocol definition."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from litestar.types import ASGIApp

    from .schemas import ImageUpload

TargetDirResolver = Callable[[str], str]
MiddlewareFactory = Callable[["ASGIApp"], "ASGIApp"]


@runtime_checkable
class AssetStore(Protocol):
    """Protocol the host dispatches image storage through.

    Implementations persist uploaded images, answer existence checks,
    delete stored images and serve them back over HTTP.
    """

    async def save(
        self,
        image: ImageUpload,
        target_dir: str | None = None,
    ) -> str:
        """Store an image.

        Args:
            image: Uploaded image handed over by the host.
            target_dir: Directory below the store's path prefix. Defaults
                to ``get_target_dir(path_prefix)``.

        Returns:
            Public URL of the stored image.

        Raises:
            CompressionError: If the image could not be compressed.
            ResolutionError: If no unique key could be resolved.
            ReadError: If the compressed file could not be read.
            UploadError: If the upload failed.
        """
        ...

    async def exists(self, file_name: str) -> bool:
        """Check whether an object exists.

        Args:
            file_name: Key of the object, relative to the bucket root.

        Returns:
            True if the object could be retrieved, False otherwise.
        """
        ...

    async def delete(
        self,
        file_name: str,
        target_dir: str | None = None,
    ) -> bool:
        """Delete a stored image.

        Returns:
            True if the delete call succeeded, False on any failure.
        """
        ...

    def serve(self, mount_path: str = "") -> MiddlewareFactory:
        """Build the read-through proxy that serves stored images.

        Args:
            mount_path: URL prefix stripped from request paths to get keys.

        Returns:
            Middleware factory wrapping the next ASGI app.
        """
        ...

    def get_target_dir(self, base: str = "") -> str:
        """Directory new uploads go to when none is given."""
        ...
