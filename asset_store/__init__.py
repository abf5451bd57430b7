"""S3-backed image asset store for content-management hosts."""

__version__ = "0.1.0"
