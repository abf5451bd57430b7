"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from asset_store.storage import S3StorageSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # S3 settings
    s3_access_key_id: str = Field(default="", description="AWS access key ID")
    s3_secret_access_key: str = Field(default="", description="AWS secret access key")
    s3_bucket: str = Field(default="", description="Bucket images are stored in")
    s3_region: str = Field(default="us-east-1", description="AWS region of the bucket")
    s3_asset_host: str | None = Field(
        default=None,
        description="Public URL base for stored images (CDN or custom domain)",
    )
    s3_path_prefix: str = Field(default="", description="Key prefix for all stored images")
    s3_endpoint_url: str | None = Field(
        default=None,
        description="Endpoint override for S3-compatible stores",
    )

    # Compression settings
    compression_quality_min: int = Field(default=65, ge=0, le=100)
    compression_quality_max: int = Field(default=80, ge=0, le=100)

    # Serving and upload limits
    serve_mount_path: str = Field(
        default="/content/images",
        description="URL prefix stored images are served under",
    )
    max_upload_size_mb: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum upload file size in MB",
    )

    @field_validator("serve_mount_path")
    @classmethod
    def _check_mount_path(cls, value: str) -> str:
        value = value.rstrip("/")
        if not value.startswith("/"):
            raise ValueError("serve_mount_path must be an absolute path below the root")
        return value

    @model_validator(mode="after")
    def _check_quality_range(self) -> "Settings":
        if self.compression_quality_min > self.compression_quality_max:
            raise ValueError("compression_quality_min must not exceed compression_quality_max")
        return self

    @computed_field
    @property
    def max_upload_size_bytes(self) -> int:
        """Maximum upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def quality_range(self) -> tuple[int, int]:
        return (self.compression_quality_min, self.compression_quality_max)

    @property
    def s3_configured(self) -> bool:
        """Check if S3 is properly configured."""
        return bool(self.s3_bucket and self.s3_access_key_id and self.s3_secret_access_key)

    def to_storage_settings(self) -> S3StorageSettings:
        """Build the asset store configuration."""
        return S3StorageSettings(
            access_key_id=self.s3_access_key_id,
            secret_access_key=self.s3_secret_access_key,
            bucket=self.s3_bucket,
            region=self.s3_region,
            asset_host=self.s3_asset_host,
            path_prefix=self.s3_path_prefix,
            endpoint_url=self.s3_endpoint_url,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    get_settings.cache_clear()
