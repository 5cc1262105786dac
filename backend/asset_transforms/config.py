# backend/asset_transforms/config.py
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_GENERATION_MAX_WAIT_ATTEMPTS,
    DEFAULT_GENERATION_STALE_AFTER_SECONDS,
    DEFAULT_GENERATION_WAIT_INTERVAL_SECONDS,
)
from .enums import LogLevel


class Settings(BaseSettings):
    # Database
    database_url: str = Field(
        default="postgresql://localhost:5432/asset_transforms",
        description="PostgreSQL connection string",
    )
    db_pool_size: int = Field(
        default=10,
        ge=2,
        le=100,
        description="Database connection pool size",
    )
    db_max_overflow: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum requests waiting for a pooled connection",
    )
    db_pool_timeout: int = Field(
        default=30,
        ge=5,
        le=300,
        description="Database connection timeout in seconds",
    )

    # ============= PATH CONFIGURATION =============
    # All generated and temporary files live under data_directory

    data_directory: str = "./data"

    @property
    def data_path(self) -> Path:
        """Get data directory as Path object"""
        return Path(self.data_directory)

    @property
    def temp_path(self) -> Path:
        """Scratch space for downloads and renders"""
        return self.data_path / "runtime" / "temp"

    @property
    def asset_sources_path(self) -> Path:
        """Local copies of remote asset sources"""
        return self.data_path / "runtime" / "assets" / "sources"

    @property
    def asset_thumbs_path(self) -> Path:
        """Control-panel sized thumbnails, keyed by size then asset ID"""
        return self.data_path / "runtime" / "assets" / "thumbs"

    @property
    def image_editor_sources_path(self) -> Path:
        """Per-asset image editor working copies"""
        return self.data_path / "runtime" / "assets" / "imageeditor"

    def ensure_directories(self):
        """Create all required directories if they don't exist"""
        directories = [
            self.data_path,
            self.temp_path,
            self.asset_sources_path,
            self.asset_thumbs_path,
            self.image_editor_sources_path,
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    # Image processing
    default_image_quality: int = Field(
        default=82,
        ge=1,
        le=100,
        description="Quality used when a transform does not declare one",
    )
    upscale_images: bool = Field(
        default=True,
        description="Allow crop transforms to enlarge images smaller than the target",
    )
    max_cached_cloud_image_size: int = Field(
        default=2000,
        ge=0,
        le=10000,
        description=(
            "Longest edge of the cached local copy of remote sources. "
            "0 disables caching and deletes sources after each request."
        ),
    )

    # Generation coordination
    generation_max_wait_attempts: int = Field(
        default=DEFAULT_GENERATION_MAX_WAIT_ATTEMPTS,
        ge=1,
        le=1000,
        description="Polls before a caller stops waiting on another worker",
    )
    generation_wait_interval_seconds: float = Field(
        default=DEFAULT_GENERATION_WAIT_INTERVAL_SECONDS,
        gt=0,
        le=60,
        description="Sleep between polls of an in-progress transform index",
    )
    generation_stale_after_seconds: int = Field(
        default=DEFAULT_GENERATION_STALE_AFTER_SECONDS,
        ge=1,
        le=3600,
        description="Age after which another worker's in-progress claim is taken over",
    )

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path (optional)"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v) -> LogLevel:
        """Validate log level is one of the allowed values"""
        if isinstance(v, LogLevel):
            return v
        allowed_levels = LogLevel.__members__.keys()
        v_upper = str(v).upper()
        if v_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(allowed_levels)}"
            )
        return LogLevel[v_upper]

    model_config = SettingsConfigDict(
        env_prefix="ASSET_TRANSFORMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
