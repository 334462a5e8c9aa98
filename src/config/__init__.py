"""
Configuration module for the exam cropper.

Provides settings, constants, and logging configuration.
"""

from config.settings import get_settings, reload_settings, Settings
from config.logging_config import (
    setup_structured_logging,
)
from config.constants import (
    GEMINI_DEFAULT_VISION_MODEL,
    NORMALIZED_SCALE,
    BOX_PADDING,
    PDF_RENDER_SCALE,
    CROP_JPEG_QUALITY,
    PAGE_JPEG_QUALITY,
)

__all__ = [
    # Settings
    'get_settings',
    'reload_settings',
    'Settings',
    # Logging
    'setup_structured_logging',
    # Constants
    'GEMINI_DEFAULT_VISION_MODEL',
    'NORMALIZED_SCALE',
    'BOX_PADDING',
    'PDF_RENDER_SCALE',
    'CROP_JPEG_QUALITY',
    'PAGE_JPEG_QUALITY',
]
