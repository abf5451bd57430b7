"""Read-through proxy streaming stored assets from S3."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from .paths import strip_leading_slash

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Message, Receive, Scope, Send

    from .s3 import S3AssetStore

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
STORE_HEADER_PREFIX = "x-amz-"

# Not forwarded; the ASGI server manages the connection and sets server and date
EXCLUDED_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "server",
        "date",
    }
)


class ServeState(str, Enum):
    """Progress of a single proxied read."""

    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING_HEADERS = "streaming_headers"
    STREAMING_BODY = "streaming_body"
    DONE = "done"
    FAILED = "failed"


class AssetProxy:
    """ASGI middleware serving GET/HEAD requests below a mount path from S3.

    Store headers and body bytes are forwarded as they arrive. When the
    object cannot be fetched, the failure is logged with the key and the
    request is handed to the wrapped app with its response status forced
    to 404. A failure after the response has started can only end the
    body early.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: S3AssetStore,
        *,
        mount_path: str = "",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.app = app
        self._store = store
        self._mount_path = mount_path.rstrip("/")
        self._chunk_size = chunk_size

    def relative_path(self, path: str) -> str | None:
        """Path below the mount point, or None if outside of it."""
        if not self._mount_path:
            return path
        if path == self._mount_path or path.startswith(self._mount_path + "/"):
            return path[len(self._mount_path) :]
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        relative = self.relative_path(scope["path"])
        if relative is None:
            await self.app(scope, receive, send)
            return

        await self._serve(strip_leading_slash(relative), scope, receive, send)

    async def _serve(self, key: str, scope: Scope, receive: Receive, send: Send) -> None:
        state = ServeState.REQUESTING
        response_started = False
        body_open = False
        try:
            async with self._store.open_object(key) as stored:
                state = ServeState.STREAMING_HEADERS
                response_started = True
                await send(
                    {
                        "type": "http.response.start",
                        "status": 200,
                        "headers": _encode_headers(stored.headers),
                    }
                )

                state = ServeState.STREAMING_BODY
                body_open = True
                if scope["method"] != "HEAD":
                    async for chunk in stored.body.iter_chunks(self._chunk_size):
                        if chunk:
                            await send(
                                {"type": "http.response.body", "body": chunk, "more_body": True}
                            )
                body_open = False
                await send({"type": "http.response.body", "body": b"", "more_body": False})
                state = ServeState.DONE
        except Exception as e:
            logger.error(f"Failed to serve asset ({state.value}): {e}\nkey: {key}")
            if not response_started:
                await self.app(scope, receive, _with_not_found_status(send))
            elif body_open:
                await send({"type": "http.response.body", "body": b"", "more_body": False})
            return

        logger.debug(f"Served asset {key}")


def _encode_headers(headers: dict[str, str]) -> list[tuple[bytes, bytes]]:
    return [
        (name.lower().encode("latin-1"), str(value).encode("latin-1"))
        for name, value in headers.items()
        if not _is_excluded(name.lower())
    ]


def _is_excluded(name: str) -> bool:
    return name in EXCLUDED_HEADERS or name.startswith(STORE_HEADER_PREFIX)


def _with_not_found_status(send: Send) -> Send:
    async def wrapped(message: Message) -> None:
        if message["type"] == "http.response.start":
            message = {**message, "status": 404}  # type: ignore[typeddict-item]
        await send(message)

    return wrapped
