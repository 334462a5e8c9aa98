"""
Base class for region detectors.

A detector turns one rasterized page plus a free-text instruction into a list
of labeled boxes in the 0-1000 space.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import List

from core.models import DetectedRegion, Page
from ai.response_parser import parse_detection_response

logger = logging.getLogger(__name__)


def _sanitize_for_logging(text: str) -> str:
    """Mask Google API keys that may appear in error messages."""
    if not text:
        return text
    return re.sub(r"AIza[a-zA-Z0-9_-]{35}", "AIza[REDACTED]", text)


class BaseProvider(ABC):
    """
    Shared detection flow: call the model, log the call, validate the output.

    Subclasses only implement the raw model call.
    """

    name: str = "base"

    @abstractmethod
    async def _request_detection(self, page: Page, instruction: str) -> str:
        """
        Send one page to the model.

        Returns:
            Raw JSON text produced by the model

        Raises:
            ConfigurationError: If credentials are missing
            UpstreamError: If the call fails or returns nothing
        """

    async def detect(self, page: Page, instruction: str) -> List[DetectedRegion]:
        """
        Detect the regions of a page matching an instruction.

        Args:
            page: A single rasterized page
            instruction: Free-text description of what to find

        Returns:
            Detected regions in model output order; empty when nothing matched
        """
        start_time = time.time()
        raw = await self._request_detection(page, instruction)
        regions = parse_detection_response(raw)

        duration = (time.time() - start_time) * 1000
        logger.info(
            f"{self.name}: page {page.index + 1} -> {len(regions)} region(s) in {duration:.0f}ms"
        )
        return regions
