"""Dependency injection providers for Litestar."""

from __future__ import annotations

import logging

from litestar.datastructures import State
from litestar.di import Provide

from asset_store.core.config import Settings
from asset_store.storage import PillowCompressor, S3AssetStore

logger = logging.getLogger(__name__)


def build_asset_store(settings: Settings) -> S3AssetStore | None:
    """Create the asset store from settings.

    Returns:
        Configured store, or None if S3 credentials are missing.
    """
    if not settings.s3_configured:
        logger.warning("S3 storage not configured - asset endpoints will be unavailable")
        return None

    store = S3AssetStore(
        settings.to_storage_settings(),
        compressor=PillowCompressor(settings.quality_range),
    )
    logger.info(f"S3 asset store initialized for bucket: {settings.s3_bucket}")
    return store


# -----------------------------------------------------------------------------
# Storage dependencies
# -----------------------------------------------------------------------------


async def get_asset_store(state: State) -> S3AssetStore:
    """Provide asset store instance.

    Returns:
        Asset store registered on the application state.

    Raises:
        RuntimeError: If store not configured.
    """
    store = state.get("asset_store")
    if store is None:
        raise RuntimeError("Asset store not initialized")
    return store


def provide_settings(state: State) -> Settings:
    """Provide the settings the application was created with."""
    return state["settings"]


# -----------------------------------------------------------------------------
# Lifecycle management
# -----------------------------------------------------------------------------


async def shutdown_services(state: State) -> None:
    """Cleanup service resources.

    Called during application shutdown.
    """
    store = state.get("asset_store")
    if store is not None:
        await store.close()
        state["asset_store"] = None
        logger.info("Asset store closed")


# Dependency providers for Litestar
dependencies = {
    "settings": Provide(provide_settings, sync_to_thread=False),
    "asset_store": Provide(get_asset_store),
}
