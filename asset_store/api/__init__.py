"""HTTP host application for the asset store."""
