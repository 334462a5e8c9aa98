"""
Vision module for page rasterization and region cropping.
"""

from vision.page_rasterizer import (
    detect_document_kind,
    iter_pages,
    load_pages,
)
from vision.region_cropper import (
    crop_region,
    pad_and_clamp,
    to_pixel_rect,
)

__all__ = [
    'detect_document_kind',
    'iter_pages',
    'load_pages',
    'crop_region',
    'pad_and_clamp',
    'to_pixel_rect',
]
