"""Litestar application factory and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from litestar import Litestar
from litestar.datastructures import State, UploadFile
from litestar.logging import LoggingConfig
from litestar.openapi import OpenAPIConfig
from litestar.openapi.spec import Contact, Server
from litestar.types import ASGIApp

from asset_store import __version__
from asset_store.api.dependencies import build_asset_store, dependencies, shutdown_services
from asset_store.api.routes import AssetController, HealthController
from asset_store.core.config import Settings, get_settings
from asset_store.storage import S3AssetStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: Litestar) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Logs the configured store on startup and releases it on shutdown.
    """
    store: S3AssetStore | None = app.state.get("asset_store")
    if store is not None:
        logger.info(f"Starting asset store service for {store.host}")

    try:
        yield
    finally:
        logger.info("Shutting down asset store service")
        await shutdown_services(app.state)


def create_app(
    settings: Settings | None = None,
    store: S3AssetStore | None = None,
) -> Litestar:
    """Create and configure Litestar application.

    Args:
        settings: Application settings. Defaults to the environment.
        store: Asset store to serve. Built from settings when omitted.

    Returns:
        Configured Litestar application instance.
    """
    settings = settings or get_settings()
    store = store or build_asset_store(settings)

    # Logging configuration
    logging_config = LoggingConfig(
        root={
            "level": "DEBUG" if settings.debug else "INFO",
            "handlers": ["console"],
        },
        formatters={
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        handlers={
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
            },
        },
        loggers={
            "asset_store": {
                "level": "DEBUG" if settings.debug else "INFO",
                "propagate": True,
            },
            "botocore": {
                "level": "WARNING",
                "propagate": False,
            },
            "aiobotocore": {
                "level": "WARNING",
                "propagate": False,
            },
        },
    )

    # OpenAPI documentation configuration
    openapi_config = OpenAPIConfig(
        title="Asset Store API",
        version=__version__,
        description="Image asset storage backed by Amazon S3",
        contact=Contact(name="API Support"),
        servers=[
            Server(
                url=f"http://{settings.api_host}:{settings.api_port}",
                description="Local development server",
            ),
        ],
        path="/docs",
    )

    return Litestar(
        route_handlers=[HealthController, AssetController],
        dependencies=dependencies,
        lifespan=[lifespan],
        state=State({"settings": settings, "asset_store": store}),
        logging_config=logging_config,
        openapi_config=openapi_config,
        debug=settings.debug,
        signature_types=[UploadFile],
    )


def create_asgi_app(
    settings: Settings | None = None,
    store: S3AssetStore | None = None,
) -> ASGIApp:
    """Create the application with the serve proxy in front of it.

    Requests below ``serve_mount_path`` are answered from the bucket. When
    an object cannot be fetched, the request falls through to Litestar,
    which renders the 404.
    """
    settings = settings or get_settings()
    app = create_app(settings, store)
    store = app.state.get("asset_store")

    if store is None:
        return app
    return store.serve(settings.serve_mount_path)(app)
