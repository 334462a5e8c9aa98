"""
Export module for packaging extracted crops.

- ZIP archive of all crops of a run
- Safe file names for archive entries and single downloads
"""

from export.archive import (
    archive_download_name,
    archive_entry_name,
    build_archive,
    crop_download_name,
    sanitize_label,
    write_crops,
)

__all__ = [
    'archive_download_name',
    'archive_entry_name',
    'build_archive',
    'crop_download_name',
    'sanitize_label',
    'write_crops',
]
