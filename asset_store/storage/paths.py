"""Storage key construction and unique-name resolution."""

from __future__ import annotations

import logging
import posixpath
import re
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from .exceptions import ResolutionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100

_UNSAFE_CHARS = re.compile(r"[^\w@.]")

ExistsCheck = Callable[[str], Awaitable[bool]]


def strip_leading_slash(value: str) -> str:
    """Remove a single leading "/" from a path."""
    return value[1:] if value.startswith("/") else value


def join_key(*parts: str) -> str:
    """Join path segments into a storage key.

    Empty segments and repeated separators are dropped, so the result
    never starts with "/" and never contains "//".
    """
    segments: list[str] = []
    for part in parts:
        if not part:
            continue
        segments.extend(s for s in part.split("/") if s)
    return "/".join(segments)


def sanitize_file_name(name: str) -> str:
    """Replace characters other than word chars, "@" and "." with "-"."""
    return _UNSAFE_CHARS.sub("-", name)


def derive_asset_host(bucket: str, region: str) -> str:
    """Public URL base for a bucket in the given AWS region."""
    if region == "us-east-1":
        return f"https://s3.amazonaws.com/{bucket}"
    return f"https://s3-{region}.amazonaws.com/{bucket}"


def dated_target_dir(base: str) -> str:
    """Default target directory: ``{base}/YYYY/MM`` for the current month."""
    now = datetime.now(timezone.utc)
    return join_key(base, f"{now:%Y}", f"{now:%m}")


class KeyResolver:
    """Finds a storage key that is not yet taken in the bucket.

    Collisions are resolved by appending ``-1``, ``-2``, ... to the file
    stem, keeping the extension. The search is bounded by
    ``max_attempts`` candidates.

    Keys handed out stay reserved until :meth:`release` is called, so
    concurrent saves through the same resolver never get the same key.
    Writers in other processes can still race between check and upload.
    """

    def __init__(
        self,
        exists: ExistsCheck,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        """Initialize resolver.

        Args:
            exists: Strict existence check. Must return False only when the
                key is missing and raise on transport failures.
            max_attempts: Maximum number of candidates to try.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._exists = exists
        self._max_attempts = max_attempts
        self._reserved: set[str] = set()

    @staticmethod
    def candidate_name(base_name: str, attempt: int) -> str:
        """Build the file name tried on the given attempt (0-based)."""
        name = sanitize_file_name(posixpath.basename(base_name))
        if attempt == 0:
            return name
        stem, ext = posixpath.splitext(name)
        return f"{stem}-{attempt}{ext}"

    async def resolve_unique_key(self, base_name: str, target_dir: str) -> str:
        """Resolve a key under ``target_dir`` that does not exist yet.

        Raises:
            ResolutionError: If an existence check fails or every
                candidate is taken.
        """
        for attempt in range(self._max_attempts):
            key = join_key(target_dir, self.candidate_name(base_name, attempt))
            if key in self._reserved:
                continue
            try:
                taken = await self._exists(key)
            except Exception as e:
                logger.error(f"Existence check failed for {key}: {e}")
                raise ResolutionError(
                    f"Failed to check existence of {key}: {e}",
                    cause=e,
                ) from e
            if not taken and key not in self._reserved:
                self._reserved.add(key)
                return key
            logger.debug(f"Storage key taken, trying next candidate: {key}")

        raise ResolutionError(
            f"Unique key resolution exhausted after {self._max_attempts} "
            f"attempts for {base_name!r} in {target_dir!r}"
        )

    def release(self, key: str) -> None:
        """Drop the reservation of a key once its upload has finished."""
        self._reserved.discard(key)
