"""
Core module for the exam cropper.

Exports key models, exceptions, and run state for easy access.
"""

from core.models import (
    Crop,
    DetectedRegion,
    NormalizedBox,
    Page,
    generate_id,
)

from core.workflow_state import (
    Run,
    RunStatus,
)

from core.exceptions import (
    CropperError,
    ConfigurationError,
    MissingAPIKeyError,
    DocumentDecodeError,
    UnsupportedFormatError,
    UpstreamError,
    SchemaError,
    InvalidRegionError,
    EmptyResultError,
    RunStateError,
)

__all__ = [
    # Models
    'Crop',
    'DetectedRegion',
    'NormalizedBox',
    'Page',
    'generate_id',
    # Run state
    'Run',
    'RunStatus',
    # Exceptions
    'CropperError',
    'ConfigurationError',
    'MissingAPIKeyError',
    'DocumentDecodeError',
    'UnsupportedFormatError',
    'UpstreamError',
    'SchemaError',
    'InvalidRegionError',
    'EmptyResultError',
    'RunStateError',
]
