"""
Custom exception hierarchy for the exam cropper.

Provides a consistent error handling approach across all modules.
"""


class CropperError(Exception):
    """
    Base exception for all exam cropper errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== Configuration Errors ====================

class ConfigurationError(CropperError):
    """
    Error in system configuration.

    Raised when required configuration is missing or invalid.
    """
    pass


class MissingAPIKeyError(ConfigurationError):
    """Raised when the vision model API key is not configured."""
    pass


# ==================== Document Errors ====================

class DocumentDecodeError(CropperError):
    """
    Raised when an input document cannot be parsed into pages.

    Aborts the run before any detection happens.
    """
    pass


class UnsupportedFormatError(DocumentDecodeError):
    """Raised when the input is neither a PDF nor a supported image."""
    pass


# ==================== Detection Errors ====================

class UpstreamError(CropperError):
    """Raised when the vision model call fails or returns no payload."""
    pass


class SchemaError(CropperError):
    """Raised when the vision model output is not the expected JSON shape."""
    pass


# ==================== Cropping Errors ====================

class InvalidRegionError(CropperError):
    """
    Raised when a padded and clamped box has no pixel area.

    Callers skip the offending region instead of failing the page.
    """
    pass


# ==================== Run Errors ====================

class EmptyResultError(CropperError):
    """Raised when a run finishes without producing a single crop."""
    pass


class RunStateError(CropperError):
    """Raised when the workflow is asked to do something in the wrong state."""
    pass
