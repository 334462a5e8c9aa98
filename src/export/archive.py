"""
Archive and file naming for extracted crops.

Bundles crops into an in-memory ZIP and derives safe file names from their
labels. Entries reuse each crop's encoded bytes as-is.
"""

import io
import re
import time
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from config.constants import ARCHIVE_FALLBACK_BASE, CROP_EXTENSION, FALLBACK_FILENAME
from core.models import Crop

# ASCII letters/digits plus the Latin-1 Supplement through Latin Extended
# Additional block, which covers Vietnamese and most European diacritics
_DISALLOWED_RUN = re.compile(r"[^a-z0-9À-ỹ]+", re.IGNORECASE)
_UNSAFE_PATH_CHARS = re.compile(r'[\x00-\x1f\x7f/\\:*?"<>|]+')


def sanitize_label(label: str) -> str:
    """
    Turn a crop label into a file-system safe stem.

    Examples:
        "Question 1"       -> "question_1"
        "Câu 2 (a)"        -> "câu_2_a"
        "!!!"              -> "crop"
    """
    cleaned = _DISALLOWED_RUN.sub("_", label.lower()).strip("_")
    return cleaned or FALLBACK_FILENAME


def archive_entry_name(label: str, position: int) -> str:
    """Entry name for the crop at 1-based ``position`` in the archive."""
    return f"{sanitize_label(label)}_{position}{CROP_EXTENSION}"


def build_archive(crops: Sequence[Crop]) -> bytes:
    """
    Bundle crops into a ZIP archive.

    Args:
        crops: Crops in the order they should appear

    Returns:
        ZIP bytes; an empty sequence yields a valid empty archive
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for position, crop in enumerate(crops, start=1):
            zf.writestr(archive_entry_name(crop.label, position), crop.image_bytes)
    return buffer.getvalue()


def archive_download_name(source_filename: Optional[str], when: Optional[datetime] = None) -> str:
    """
    Download name for the archive of a document.

    Uses the part of the source name before its first dot and a
    millisecond timestamp, e.g. ``exam_extracted_1760790000000.zip``.
    """
    base = ""
    if source_filename:
        base = Path(source_filename).name.split(".")[0]
    base = _UNSAFE_PATH_CHARS.sub("_", base).strip() or ARCHIVE_FALLBACK_BASE

    if when is None:
        millis = time.time_ns() // 1_000_000
    else:
        millis = int(when.timestamp() * 1000)
    return f"{base}_extracted_{millis}.zip"


def crop_download_name(crop: Crop) -> str:
    """Download name for a single crop, named after its label."""
    name = _UNSAFE_PATH_CHARS.sub("_", crop.label).strip().strip(".")
    return f"{name or FALLBACK_FILENAME}{CROP_EXTENSION}"


def write_crops(crops: Iterable[Crop], directory: Path) -> List[Path]:
    """
    Write crops to a directory using their archive entry names.

    Returns:
        Paths of the written files, in crop order
    """
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for position, crop in enumerate(crops, start=1):
        path = directory / archive_entry_name(crop.label, position)
        path.write_bytes(crop.image_bytes)
        written.append(path)
    return written
