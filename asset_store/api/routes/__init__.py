"""API routes module."""

from .assets import AssetController, HealthController

__all__ = [
    "AssetController",
    "HealthController",
]
