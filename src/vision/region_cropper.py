"""
Crop detected regions out of a rasterized page.

Boxes arrive in the detector's 0-1000 space. They are padded by a flat
amount, clamped back into the space, scaled to page pixels and cut onto a
white surface.
"""

import asyncio
import math
from typing import Tuple

from PIL import Image

from config.constants import BOX_PADDING, CROP_JPEG_QUALITY, NORMALIZED_SCALE
from core.exceptions import InvalidRegionError
from core.models import Crop, NormalizedBox, Page
from vision.imaging import WHITE, encode_jpeg, has_alpha


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up."""
    return math.floor(value + 0.5)


def _clamp(value: float) -> float:
    return min(float(NORMALIZED_SCALE), max(0.0, value))


def pad_and_clamp(box: NormalizedBox, padding: float = BOX_PADDING) -> NormalizedBox:
    """
    Grow a box by ``padding`` units on every side, then clamp it to 0-1000.

    Padding comes first so a box touching an edge loses only the padding
    that would fall outside the page.
    """
    return NormalizedBox(
        ymin=_clamp(box.ymin - padding),
        xmin=_clamp(box.xmin - padding),
        ymax=_clamp(box.ymax + padding),
        xmax=_clamp(box.xmax + padding),
    )


def to_pixel_rect(box: NormalizedBox, width: int, height: int) -> Tuple[int, int, int, int]:
    """
    Scale a normalized box to page pixels.

    Args:
        box: Box in the 0-1000 space
        width: Page width in pixels
        height: Page height in pixels

    Returns:
        (left, top, crop_width, crop_height); the sizes may be <= 0 for
        degenerate boxes
    """
    left = round_half_up(box.xmin / NORMALIZED_SCALE * width)
    top = round_half_up(box.ymin / NORMALIZED_SCALE * height)
    crop_width = round_half_up((box.xmax - box.xmin) / NORMALIZED_SCALE * width)
    crop_height = round_half_up((box.ymax - box.ymin) / NORMALIZED_SCALE * height)
    return left, top, crop_width, crop_height


def crop_region(
    page: Page,
    box: NormalizedBox,
    label: str,
    padding: float = BOX_PADDING,
    quality: int = CROP_JPEG_QUALITY,
) -> Crop:
    """
    Cut one region out of a page.

    Args:
        page: Source page
        box: Detected box in the 0-1000 space
        label: Display label, stored unchanged on the crop
        padding: Flat padding in normalized units
        quality: JPEG quality of the encoded crop

    Returns:
        Crop holding the encoded JPEG

    Raises:
        InvalidRegionError: If the box is inverted, or has no pixel width or
            height after padding
    """
    if box.ymin >= box.ymax or box.xmin >= box.xmax:
        raise InvalidRegionError(
            f"Region '{label}' is inverted",
            {"box": box.model_dump()}
        )

    padded = pad_and_clamp(box, padding)
    left, top, crop_width, crop_height = to_pixel_rect(padded, page.width, page.height)

    if crop_width <= 0 or crop_height <= 0:
        raise InvalidRegionError(
            f"Region '{label}' has no area after padding",
            {"box": box.model_dump(), "pixels": (left, top, crop_width, crop_height)}
        )

    surface = Image.new("RGB", (crop_width, crop_height), WHITE)

    # Rounding can push the far edge one pixel past the page; the surface
    # keeps its size and the missing strip stays white.
    source = page.image.crop((
        left,
        top,
        min(left + crop_width, page.width),
        min(top + crop_height, page.height),
    ))
    if has_alpha(source):
        source = source.convert("RGBA")
        surface.paste(source, (0, 0), source)
    else:
        surface.paste(source.convert("RGB"), (0, 0))

    return Crop(
        label=label,
        page_index=page.index,
        width=crop_width,
        height=crop_height,
        image_bytes=encode_jpeg(surface, quality),
    )


async def crop_region_async(
    page: Page,
    box: NormalizedBox,
    label: str,
    padding: float = BOX_PADDING,
    quality: int = CROP_JPEG_QUALITY,
) -> Crop:
    """Run crop_region in a worker thread so encoding does not block the loop."""
    return await asyncio.to_thread(crop_region, page, box, label, padding, quality)
