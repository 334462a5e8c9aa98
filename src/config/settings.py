"""
Configuration management for the exam cropper.

All configuration comes from environment variables or .env file.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.constants import (
    API_REQUEST_TIMEOUT,
    BOX_PADDING,
    CROP_JPEG_QUALITY,
    GEMINI_DEFAULT_VISION_MODEL,
    MAX_UPLOAD_SIZE,
    MULTI_PAGE_LABEL,
    PAGE_JPEG_QUALITY,
    PDF_RENDER_SCALE,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EXAM_CROPPER_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Credentials. An empty key is valid here: the detector refuses to run
    # without one, which is where the error is reported.
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("EXAM_CROPPER_GEMINI_API_KEY", "GEMINI_API_KEY", "gemini_api_key"),
    )

    # Model
    gemini_model: str = GEMINI_DEFAULT_VISION_MODEL
    request_timeout_s: float = API_REQUEST_TIMEOUT

    # Pipeline
    render_scale: float = PDF_RENDER_SCALE
    box_padding: int = BOX_PADDING
    crop_jpeg_quality: int = CROP_JPEG_QUALITY
    page_jpeg_quality: int = PAGE_JPEG_QUALITY
    multi_page_label: str = MULTI_PAGE_LABEL

    # API
    max_upload_size: int = MAX_UPLOAD_SIZE
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    process_rate_limit: str = "10/minute"

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    # Validators
    @field_validator("crop_jpeg_quality", "page_jpeg_quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:
        """JPEG quality must be a Pillow quality value."""
        if not 1 <= v <= 95:
            raise ValueError("JPEG quality must be between 1 and 95")
        return v

    @field_validator("render_scale")
    @classmethod
    def validate_render_scale(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("render_scale must be positive")
        return v

    @field_validator("box_padding")
    @classmethod
    def validate_box_padding(cls, v: int) -> int:
        if v < 0:
            raise ValueError("box_padding cannot be negative")
        return v

    @field_validator("multi_page_label")
    @classmethod
    def validate_multi_page_label(cls, v: str) -> str:
        """The template must place both the page number and the label."""
        if "{page}" not in v or "{label}" not in v:
            raise ValueError("multi_page_label must contain {page} and {label}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from environment."""
    get_settings.cache_clear()
    return get_settings()
