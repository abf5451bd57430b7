"""Asset storage DTOs using msgspec."""

from __future__ import annotations

from enum import Enum

import msgspec


class ImageFormat(str, Enum):
    """Image formats the compressor knows how to handle."""

    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"
    SVG = "svg"

    @classmethod
    def from_content_type(cls, content_type: str) -> ImageFormat:
        """Get format from MIME type."""
        mapping = {
            "image/jpeg": cls.JPEG,
            "image/jpg": cls.JPEG,
            "image/pjpeg": cls.JPEG,
            "image/png": cls.PNG,
            "image/gif": cls.GIF,
            "image/webp": cls.WEBP,
            "image/svg+xml": cls.SVG,
        }
        fmt = mapping.get(content_type.lower())
        if fmt is None:
            raise ValueError(f"Unsupported content type: {content_type}")
        return fmt

    @classmethod
    def from_extension(cls, ext: str) -> ImageFormat:
        """Get format from file extension."""
        ext = ext.lower().lstrip(".")
        mapping = {
            "jpeg": cls.JPEG,
            "jpg": cls.JPEG,
            "png": cls.PNG,
            "gif": cls.GIF,
            "webp": cls.WEBP,
            "svg": cls.SVG,
        }
        fmt = mapping.get(ext)
        if fmt is None:
            raise ValueError(f"Unsupported extension: {ext}")
        return fmt

    @property
    def content_type(self) -> str:
        """Get MIME type for format."""
        return {
            self.JPEG: "image/jpeg",
            self.PNG: "image/png",
            self.GIF: "image/gif",
            self.WEBP: "image/webp",
            self.SVG: "image/svg+xml",
        }[self]


class ImageUpload(msgspec.Struct, kw_only=True):
    """An image handed over by the host for one save operation."""

    path: str  # Local file the host wrote the upload to
    name: str  # Original filename, used to derive the storage key
    content_type: str
