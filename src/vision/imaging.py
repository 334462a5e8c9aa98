"""
Small Pillow helpers shared by the rasterizer and the cropper.
"""

import io

from PIL import Image

WHITE = (255, 255, 255)


def has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )


def flatten_on_white(image: Image.Image) -> Image.Image:
    """
    Return an RGB copy of the image with transparency composited on white.

    JPEG has no alpha channel; converting RGBA straight to RGB would turn
    transparent areas black.
    """
    if has_alpha(image):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, WHITE)
        background.paste(rgba, (0, 0), rgba)
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    """Encode an image as JPEG bytes at the given Pillow quality."""
    buffer = io.BytesIO()
    flatten_on_white(image).save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
