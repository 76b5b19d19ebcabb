"""
Centralized configuration using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Use get_settings() to access the singleton settings instance.
"""

from datetime import timedelta
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables.
    Example: QUOTA_DAILY_LIMIT=25 OPENAI_API_KEY=sk-... uvicorn reefscan.main:app
    """

    # ==========================================================================
    # Vision Model
    # ==========================================================================
    openai_api_key: str | None = Field(default=None, description='OpenAI API key')

    vision_model: str = Field(default='gpt-4o', description='Vision-capable chat model')

    vision_timeout_seconds: float = Field(
        default=30.0, description='Timeout for one vision model call in seconds'
    )

    vision_max_tokens: int = Field(default=4096, description='Completion token budget')

    # ==========================================================================
    # Quota
    # ==========================================================================
    quota_daily_limit: int = Field(
        default=10, ge=1, description='Vision model calls allowed per device per window'
    )

    quota_window_hours: int = Field(default=24, ge=1, description='Quota window length in hours')

    # ==========================================================================
    # Reconciliation
    # ==========================================================================
    confidence_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description='Detections below this are never persisted'
    )

    catalog_autocreate_confidence: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description='Minimum confidence for adding an unmatched species to the catalog',
    )

    catalog_seed_path: str | None = Field(
        default=None, description='Optional JSON file preloading the species catalog'
    )

    # ==========================================================================
    # Storage
    # ==========================================================================
    storage_bucket: str = Field(default='reef-photos', description='Object store bucket name')

    storage_root: str = Field(
        default='./data/objects', description='Local directory backing the object store'
    )

    public_base_url: str = Field(
        default='http://localhost:8000/media', description='Public URL prefix for stored objects'
    )

    # ==========================================================================
    # Image Handling
    # ==========================================================================
    max_file_size_mb: int = Field(default=10, description='Maximum upload file size in MB')

    jpeg_quality: int = Field(
        default=90, ge=1, le=100, description='Quality used when normalising uploads to JPEG'
    )

    annotation_jpeg_quality: int = Field(
        default=90, ge=1, le=100, description='Quality of the annotated JPEG variant'
    )

    photo_fetch_timeout_seconds: float = Field(
        default=15.0, gt=0, description='Timeout for downloading a photo by URL'
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_title: str = Field(default='Reefscan Marine Life API', description='API title')

    api_description: str = Field(
        default='Marine life detection, sighting collections and annotated photos',
        description='API description for OpenAPI docs',
    )

    api_version: str = Field(default='1.0.0', description='API version')

    slow_request_threshold_ms: int = Field(
        default=2000, description='Log requests slower than this threshold'
    )

    log_level: str = Field(default='INFO', description='Root logging level')

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def max_file_size_bytes(self) -> int:
        """Maximum file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def quota_window(self) -> timedelta:
        """Length of one quota window."""
        return timedelta(hours=self.quota_window_hours)

    class Config:
        env_prefix = ''  # No prefix for env vars
        case_sensitive = False
        extra = 'ignore'


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance (singleton pattern).

    Returns:
        Settings: Application settings
    """
    return Settings()
