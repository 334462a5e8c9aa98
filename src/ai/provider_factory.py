"""
Factory for creating region detectors from configuration.
"""

from typing import Optional

from ai.base_provider import BaseProvider
from ai.gemini_provider import GeminiProvider
from config.settings import Settings, get_settings


def create_detector(
    settings: Optional[Settings] = None,
    model: Optional[str] = None,
) -> BaseProvider:
    """
    Create the configured region detector.

    Args:
        settings: Settings to read credentials from (default: cached settings)
        model: Override model name

    Returns:
        Detector instance. A missing API key is reported when it is used,
        not here.
    """
    settings = settings or get_settings()
    return GeminiProvider(
        api_key=settings.gemini_api_key,
        model=model or settings.gemini_model,
        timeout_s=settings.request_timeout_s,
    )
