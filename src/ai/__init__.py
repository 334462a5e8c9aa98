"""
AI providers for region detection.

Usage:
    from ai import create_detector

    detector = create_detector()
    regions = await detector.detect(page, "every question")
"""

# Lazy imports keep google-genai off the import path of modules that only
# need the models
__all__ = [
    "GeminiProvider",
    "create_detector",
]


def GeminiProvider(*args, **kwargs):
    """Create a Gemini provider instance (lazy import)."""
    from .gemini_provider import GeminiProvider as _GeminiProvider
    return _GeminiProvider(*args, **kwargs)


def create_detector(*args, **kwargs):
    """Create the configured detector (lazy import)."""
    from .provider_factory import create_detector as _create_detector
    return _create_detector(*args, **kwargs)
