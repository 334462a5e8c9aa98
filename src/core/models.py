"""
Core data models for the exam cropper.

Pydantic models describe what crosses the detector boundary and what a run
produces; pages stay plain dataclasses because they carry PIL images.
"""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from config.constants import NORMALIZED_SCALE


def generate_id() -> str:
    """Generate a unique crop identifier."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Page:
    """
    One rasterized page of the input document.

    Attributes:
        index: 0-based position in the document
        image: Decoded raster used for cropping
        jpeg: JPEG bytes sent to the vision model
    """
    index: int
    image: Image.Image
    jpeg: bytes

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


class NormalizedBox(BaseModel):
    """
    Bounding box in the abstract 0-1000 coordinate space.

    Only the presence and numeric type of the four fields is checked when
    parsing model output; ordering and range are the cropper's concern.
    """
    model_config = ConfigDict(frozen=True)

    ymin: float
    xmin: float
    ymax: float
    xmax: float

    @property
    def is_well_formed(self) -> bool:
        """True when the box is ordered and fully inside the 0-1000 space."""
        in_range = all(
            0 <= v <= NORMALIZED_SCALE
            for v in (self.ymin, self.xmin, self.ymax, self.xmax)
        )
        return in_range and self.ymin < self.ymax and self.xmin < self.xmax


class DetectedRegion(BaseModel):
    """A labeled box returned by the vision model."""
    model_config = ConfigDict(frozen=True)

    label: str
    box_2d: NormalizedBox


class Crop(BaseModel):
    """
    Final extracted image for one detected region.

    image_bytes is the only encoding of the crop: the inline preview and the
    archive entry are both derived from it.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    label: str
    page_index: int = 0
    width: int
    height: int
    image_bytes: bytes = Field(repr=False)
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"
