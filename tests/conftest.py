"""
Shared fixtures: synthetic pages and documents, and a scripted detector.
"""

import io
import json
from typing import List, Union

import fitz
import pytest
from PIL import Image

from ai.base_provider import BaseProvider
from config.settings import get_settings
from core.models import Page
from vision.imaging import encode_jpeg


def regions_json(*regions) -> str:
    """JSON payload as the model would return it."""
    return json.dumps([
        {"label": label, "box_2d": {"ymin": box[0], "xmin": box[1], "ymax": box[2], "xmax": box[3]}}
        for label, box in regions
    ])


class ScriptedDetector(BaseProvider):
    """Detector returning canned payloads, one per call, in order."""

    name = "scripted"

    def __init__(self, responses: List[Union[str, Exception]]):
        self.responses = list(responses)
        self.calls = []

    async def _request_detection(self, page: Page, instruction: str) -> str:
        self.calls.append((page.index, instruction))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate tests from the developer's environment."""
    monkeypatch.delenv("EXAM_CROPPER_GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_page():
    """Build a page of the given size and color."""
    def _make(width=1000, height=1000, color=(200, 200, 200), index=0, mode="RGB"):
        image = Image.new(mode, (width, height), color)
        return Page(index=index, image=image, jpeg=encode_jpeg(image, 85))
    return _make


@pytest.fixture
def image_bytes():
    """Encode a solid image in the given format."""
    def _make(fmt="PNG", size=(400, 300), color=(10, 120, 200)):
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()
    return _make


@pytest.fixture
def pdf_bytes():
    """Build a PDF with the given number of A-sized pages."""
    def _make(page_count=2, width=200, height=300):
        doc = fitz.open()
        for i in range(page_count):
            page = doc.new_page(width=width, height=height)
            page.insert_text((20, 40), f"Question {i + 1}")
        data = doc.tobytes()
        doc.close()
        return data
    return _make
