"""Asset storage exceptions."""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for asset storage operations."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class CompressionError(StorageError):
    """Raised when the image compressor fails."""


class ResolutionError(StorageError):
    """Raised when a unique storage key cannot be resolved."""


class ReadError(StorageError):
    """Raised when the compressed artifact cannot be read back."""


class UploadError(StorageError):
    """Raised when writing the object to the bucket fails."""
