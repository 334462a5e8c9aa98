"""
Google Gemini provider for region detection.

Sends one page image with the detection prompt and asks for a JSON array
constrained by a response schema.
"""

import logging
from typing import Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ai.base_provider import BaseProvider, _sanitize_for_logging
from config.constants import API_REQUEST_TIMEOUT, GEMINI_DEFAULT_VISION_MODEL
from core.exceptions import MissingAPIKeyError, UpstreamError
from core.models import Page
from prompts.detection import DETECTION_SYSTEM_INSTRUCTION, build_detection_prompt

logger = logging.getLogger(__name__)


def _number() -> types.Schema:
    return types.Schema(type=types.Type.NUMBER)


# Array of {label, box_2d{ymin, xmin, ymax, xmax}}, every field required
DETECTION_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "label": types.Schema(type=types.Type.STRING),
            "box_2d": types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "ymin": _number(),
                    "xmin": _number(),
                    "ymax": _number(),
                    "xmax": _number(),
                },
                required=["ymin", "xmin", "ymax", "xmax"],
            ),
        },
        required=["label", "box_2d"],
    ),
)

# Failures of the call itself, as opposed to a bad payload
UPSTREAM_EXCEPTIONS = (
    genai_errors.APIError,
    httpx.HTTPError,
    ConnectionError,
    TimeoutError,
)


class GeminiProvider(BaseProvider):
    """
    Region detector backed by the Gemini API.

    The API key is checked on every call, before a client exists, so a
    missing credential never results in a request.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GEMINI_DEFAULT_VISION_MODEL,
        timeout_s: float = API_REQUEST_TIMEOUT,
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google API key; may be empty, detect() then refuses to run
            model: Vision model name
            timeout_s: Request timeout in seconds
        """
        self.api_key = api_key or ""
        self.model = model
        self.timeout_s = timeout_s
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout_s * 1000)),
            )
        return self._client

    def _build_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=DETECTION_SYSTEM_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=DETECTION_RESPONSE_SCHEMA,
        )

    async def _request_detection(self, page: Page, instruction: str) -> str:
        if not self.api_key:
            raise MissingAPIKeyError(
                "Gemini API key is not configured. "
                "Set EXAM_CROPPER_GEMINI_API_KEY in the environment or .env"
            )

        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_text(text=build_detection_prompt(instruction)),
                    types.Part.from_bytes(data=page.jpeg, mime_type="image/jpeg"),
                ],
            )
        ]

        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=self._build_config(),
            )
        except UPSTREAM_EXCEPTIONS as e:
            message = _sanitize_for_logging(str(e))
            logger.error(f"Gemini detection error on page {page.index + 1}: {message}")
            raise UpstreamError(
                f"Vision model request failed: {message}",
                {"model": self.model, "page": page.index}
            ) from e
        except Exception as e:
            # SSL, socket and aiohttp failures do not share a base class
            message = _sanitize_for_logging(str(e)) or type(e).__name__
            logger.error(f"Unexpected Gemini error on page {page.index + 1}: {message}")
            raise UpstreamError(
                f"Vision model request failed: {message}",
                {"model": self.model, "page": page.index, "error_type": type(e).__name__}
            ) from e

        text = response.text
        if not text:
            raise UpstreamError(
                "The vision model returned no result",
                {"model": self.model, "page": page.index}
            )
        return text
