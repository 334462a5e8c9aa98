"""
Page rasterization for uploaded documents.

Uses PyMuPDF (fitz) to render PDF pages and Pillow to decode still images.
"""

import asyncio
import io
import logging
from typing import Iterator, List, Literal, Optional

import fitz  # PyMuPDF
from PIL import Image, ImageOps, UnidentifiedImageError

from config.constants import (
    PAGE_JPEG_QUALITY,
    PDF_MAGIC,
    PDF_RENDER_SCALE,
    SUPPORTED_IMAGE_FORMATS,
)
from core.exceptions import DocumentDecodeError, UnsupportedFormatError
from core.models import Page
from vision.imaging import encode_jpeg

logger = logging.getLogger(__name__)

DocumentKind = Literal["pdf", "image"]

EXIF_ORIENTATION = 0x0112


def detect_document_kind(data: bytes, filename: Optional[str] = None) -> DocumentKind:
    """
    Decide how an upload should be rasterized.

    Args:
        data: Raw uploaded bytes
        filename: Original file name, used as a hint for PDFs

    Returns:
        "pdf" or "image"

    Raises:
        UnsupportedFormatError: If the bytes are neither a PDF nor a supported image
    """
    if not data:
        raise UnsupportedFormatError("Empty document")

    if data.startswith(PDF_MAGIC) or (filename and filename.lower().endswith(".pdf")):
        return "pdf"

    try:
        with Image.open(io.BytesIO(data)) as probe:
            image_format = probe.format
    except (UnidentifiedImageError, OSError) as e:
        raise UnsupportedFormatError(
            "Unsupported document format",
            {"filename": filename}
        ) from e

    if image_format not in SUPPORTED_IMAGE_FORMATS:
        raise UnsupportedFormatError(
            f"Unsupported image format: {image_format}",
            {"filename": filename}
        )
    return "image"


def iter_pages(
    data: bytes,
    filename: Optional[str] = None,
    scale: float = PDF_RENDER_SCALE,
    jpeg_quality: int = PAGE_JPEG_QUALITY,
) -> Iterator[Page]:
    """
    Lazily rasterize a document into pages.

    A still image yields exactly one page holding the image itself. A PDF
    yields one page per document page, rendered at ``scale``.

    Raises:
        UnsupportedFormatError: If the input kind is not recognised
        DocumentDecodeError: If the document cannot be parsed
    """
    kind = detect_document_kind(data, filename)
    if kind == "pdf":
        yield from _iter_pdf_pages(data, scale, jpeg_quality)
    else:
        yield _image_page(data, jpeg_quality)


def _image_page(data: bytes, jpeg_quality: int) -> Page:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise DocumentDecodeError(f"Failed to decode image: {e}") from e

    # Photos are stored sideways with an orientation tag; crop from the upright
    # raster the model sees
    source_format = image.format
    rotated = image.getexif().get(EXIF_ORIENTATION, 1) != 1
    if rotated:
        image = ImageOps.exif_transpose(image)

    # Unrotated JPEG uploads go to the detector untouched
    if source_format == "JPEG" and not rotated:
        jpeg = data
    else:
        jpeg = encode_jpeg(image, jpeg_quality)

    logger.debug(f"Loaded {source_format} image {image.width}x{image.height}")
    return Page(index=0, image=image, jpeg=jpeg)


def _iter_pdf_pages(data: bytes, scale: float, jpeg_quality: int) -> Iterator[Page]:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise DocumentDecodeError(f"Failed to open PDF: {e}") from e

    with doc:
        if doc.page_count == 0:
            raise DocumentDecodeError("PDF has no pages")

        matrix = fitz.Matrix(scale, scale)
        for index in range(doc.page_count):
            try:
                pix = doc.load_page(index).get_pixmap(matrix=matrix, alpha=False)
            except Exception as e:
                raise DocumentDecodeError(f"Failed to render page {index + 1}: {e}") from e

            # Copy the samples out so the pixmap can be released right away
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            pix = None

            logger.debug(f"Rendered page {index + 1}/{doc.page_count} at {image.width}x{image.height}")
            yield Page(index=index, image=image, jpeg=encode_jpeg(image, jpeg_quality))


async def load_pages(
    data: bytes,
    filename: Optional[str] = None,
    scale: float = PDF_RENDER_SCALE,
    jpeg_quality: int = PAGE_JPEG_QUALITY,
) -> List[Page]:
    """Rasterize a whole document in a worker thread."""
    return await asyncio.to_thread(
        lambda: list(iter_pages(data, filename, scale=scale, jpeg_quality=jpeg_quality))
    )
