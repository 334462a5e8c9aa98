"""
Run state for the crop workflow.

A Run is an immutable snapshot; every transition produces a new one that is
handed to subscribers instead of being mutated in place.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from core.models import Crop


class RunStatus(str, Enum):
    """States of a crop run."""
    IDLE = "idle"              # Nothing running; pages may be loaded
    UPLOADING = "uploading"    # Rasterizing the uploaded document
    PROCESSING = "processing"  # Detecting and cropping page by page
    SUCCESS = "success"        # At least one crop produced
    ERROR = "error"            # Terminal failure, see Run.error


@dataclass(frozen=True)
class Run:
    """
    Snapshot of one session's pipeline state.

    Usage:
        run = Run()
        run = run.with_status(RunStatus.PROCESSING).with_progress(5)
    """
    run_id: int = 0
    status: RunStatus = RunStatus.IDLE
    progress: int = 0
    filename: Optional[str] = None
    page_count: int = 0
    instruction: Optional[str] = None
    crops: Tuple[Crop, ...] = ()
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def with_status(self, status: RunStatus) -> "Run":
        return replace(self, status=status)

    def with_progress(self, progress: int) -> "Run":
        """Progress only ever moves forward within a run."""
        return replace(self, progress=max(self.progress, min(100, progress)))

    def with_crops(self, crops: Tuple[Crop, ...]) -> "Run":
        return replace(self, crops=tuple(crops))

    def with_error(self, error: Exception) -> "Run":
        """Move to ERROR carrying the failure's message and class name."""
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        return replace(
            self,
            status=RunStatus.ERROR,
            error=message,
            error_kind=type(error).__name__,
            crops=(),
        )

    def find_crop(self, crop_id: str) -> Optional[Crop]:
        for crop in self.crops:
            if crop.id == crop_id:
                return crop
        return None
