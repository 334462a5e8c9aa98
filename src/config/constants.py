"""
Constants and configuration values for the exam cropper.

Defines the coordinate space, rendering and encoding defaults, and
system-wide constants.
"""

from typing import Final

# Gemini Model Configuration
GEMINI_MODEL_FLASH: Final[str] = "gemini-3-flash-preview"
GEMINI_DEFAULT_VISION_MODEL: Final[str] = GEMINI_MODEL_FLASH

# Normalized coordinate space used by the detector (0-1000 on both axes)
NORMALIZED_SCALE: Final[int] = 1000

# Flat padding added on every side of a detected box, in normalized units
BOX_PADDING: Final[int] = 15

# Rendering
PDF_RENDER_SCALE: Final[float] = 2.0  # Upscale factor keeping small print legible
PAGE_JPEG_QUALITY: Final[int] = 85    # Pages sent to the detector
CROP_JPEG_QUALITY: Final[int] = 90    # Final crops

# Input formats
PDF_MAGIC: Final[bytes] = b"%PDF"
SUPPORTED_IMAGE_FORMATS: Final[tuple] = ("JPEG", "PNG", "WEBP", "GIF", "BMP", "TIFF", "MPO")
MAX_UPLOAD_SIZE: Final[int] = 50 * 1024 * 1024  # 50MB

# Labels and file naming
MULTI_PAGE_LABEL: Final[str] = "Page {page} - {label}"
FALLBACK_FILENAME: Final[str] = "crop"
CROP_EXTENSION: Final[str] = ".jpg"
ARCHIVE_FALLBACK_BASE: Final[str] = "extracted"

# Progress (percent of a page's share of the run)
PROGRESS_START: Final[int] = 5
PROGRESS_DETECTION_REQUESTED: Final[float] = 0.2
PROGRESS_DETECTION_RETURNED: Final[float] = 0.6
PROGRESS_PAGE_COMPLETE: Final[float] = 1.0

# API Timeouts
API_REQUEST_TIMEOUT: Final[float] = 120.0  # seconds
