"""Asset storage module.

Provides the host-facing asset store protocol with an Amazon S3
implementation, image compression and a read-through serve proxy.
"""

from .base import AssetStore, TargetDirResolver
from .compression import ImageCompressor, PillowCompressor
from .exceptions import (
    CompressionError,
    ReadError,
    ResolutionError,
    StorageError,
    UploadError,
)
from .paths import KeyResolver, derive_asset_host, join_key, strip_leading_slash
from .proxy import AssetProxy, ServeState
from .s3 import S3AssetStore, S3StorageSettings
from .schemas import ImageFormat, ImageUpload

__all__ = [
    # Protocol
    "AssetStore",
    "TargetDirResolver",
    # Implementation
    "AssetProxy",
    "KeyResolver",
    "S3AssetStore",
    "S3StorageSettings",
    "ServeState",
    # Compression
    "ImageCompressor",
    "PillowCompressor",
    # Schemas
    "ImageFormat",
    "ImageUpload",
    # Helpers
    "derive_asset_host",
    "join_key",
    "strip_leading_slash",
    # Exceptions
    "CompressionError",
    "ReadError",
    "ResolutionError",
    "StorageError",
    "UploadError",
]
