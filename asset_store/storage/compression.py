"""Image compression applied before upload."""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from .exceptions import CompressionError
from .schemas import ImageFormat

logger = logging.getLogger(__name__)

DEFAULT_QUALITY_RANGE = (65, 80)
DEFAULT_QUALITY_STEP = 5
MAX_PALETTE_COLORS = 256


@runtime_checkable
class ImageCompressor(Protocol):
    """Protocol for compressors used by the asset store."""

    async def compress(self, source_path: Path, output_dir: Path) -> Path:
        """Write a compressed copy of ``source_path`` into ``output_dir``.

        Returns:
            Path of the compressed file. The caller owns it and must
            remove it.

        Raises:
            CompressionError: If compression fails. No partial output is
                left behind.
        """
        ...


class PillowCompressor:
    """Pillow-backed compressor.

    The quality range is an acceptance band. Encoding starts at the upper
    bound and steps down toward the lower bound until the result is smaller
    than the source. JPEGs are re-encoded progressively at each quality.
    PNGs are quantized to a palette whose size scales with the quality. If
    no quality in the band shrinks the file, the source is kept unchanged.
    Other formats are copied as they are.
    """

    def __init__(
        self,
        quality_range: tuple[int, int] = DEFAULT_QUALITY_RANGE,
        *,
        quality_step: int = DEFAULT_QUALITY_STEP,
    ) -> None:
        low, high = quality_range
        if not 0 <= low <= high <= 100:
            raise ValueError(f"Invalid quality range: {low}-{high}")
        if quality_step < 1:
            raise ValueError("quality_step must be at least 1")
        self._quality_range = (low, high)
        self._quality_step = quality_step

    @property
    def quality_range(self) -> tuple[int, int]:
        return self._quality_range

    def qualities(self) -> list[int]:
        """Qualities tried, from the upper bound down to the lower bound."""
        low, high = self._quality_range
        steps = list(range(high, low, -self._quality_step))
        steps.append(low)
        return steps

    async def compress(self, source_path: Path, output_dir: Path) -> Path:
        output_path = output_dir / f"{uuid4().hex}{source_path.suffix.lower()}"
        try:
            await asyncio.to_thread(self._compress_sync, source_path, output_path)
        except Exception as e:
            output_path.unlink(missing_ok=True)
            logger.error(f"Compression failed for {source_path.name}: {e}")
            raise CompressionError(f"Failed to compress image: {e}", cause=e) from e
        return output_path

    def _compress_sync(self, source_path: Path, output_path: Path) -> None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        original_size = source_path.stat().st_size

        try:
            with Image.open(source_path) as img:
                image_format = _detect_format(img)
                if image_format is ImageFormat.JPEG:
                    quality = self._encode_within_band(img, output_path, original_size, _save_jpeg)
                elif image_format is ImageFormat.PNG:
                    quality = self._encode_within_band(img, output_path, original_size, _save_png)
                else:
                    quality = None
        except UnidentifiedImageError:
            quality = None

        if quality is None:
            shutil.copyfile(source_path, output_path)
            logger.debug(f"Kept original {source_path.name}")
            return

        logger.debug(
            f"Compressed {source_path.name} at quality {quality}: "
            f"{original_size} -> {output_path.stat().st_size} bytes"
        )

    def _encode_within_band(
        self,
        img: Image.Image,
        output_path: Path,
        original_size: int,
        encode: Callable[[Image.Image, Path, int], None],
    ) -> int | None:
        for quality in self.qualities():
            encode(img, output_path, quality)
            if output_path.stat().st_size < original_size:
                return quality
        return None


def _save_jpeg(img: Image.Image, output_path: Path, quality: int) -> None:
    if img.mode not in ("RGB", "L", "CMYK"):
        img = img.convert("RGB")
    img.save(output_path, format="JPEG", quality=quality, optimize=True, progressive=True)


def palette_size(quality: int) -> int:
    """Number of palette colours used for a PNG at ``quality``."""
    return max(2, round(MAX_PALETTE_COLORS * quality / 100))


def _save_png(img: Image.Image, output_path: Path, quality: int) -> None:
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA")
    quantized = img.quantize(colors=palette_size(quality), method=Image.Quantize.FASTOCTREE)
    quantized.save(output_path, format="PNG", optimize=True)


def _detect_format(img: Image.Image) -> ImageFormat | None:
    if not img.format:
        return None
    try:
        return ImageFormat.from_extension(img.format)
    except ValueError:
        return None
