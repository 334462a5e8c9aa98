"""
Pydantic schemas for API request/response validation.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from core.models import Crop
from core.workflow_state import Run


# ============================================================================
# Request Schemas
# ============================================================================

class ProcessRequest(BaseModel):
    """Request to run detection and cropping on the loaded document."""
    instruction: str = Field(..., min_length=1, max_length=2000)

    @field_validator("instruction")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("instruction cannot be blank")
        return v.strip()


# ============================================================================
# Response Schemas
# ============================================================================

class CropResponse(BaseModel):
    """One crop, without its image bytes."""
    id: str
    label: str
    page_index: int
    width: int
    height: int
    url: str

    @classmethod
    def from_crop(cls, session_id: str, crop: Crop) -> "CropResponse":
        return cls(
            id=crop.id,
            label=crop.label,
            page_index=crop.page_index,
            width=crop.width,
            height=crop.height,
            url=f"/api/sessions/{session_id}/crops/{crop.id}",
        )


class RunResponse(BaseModel):
    """Current state of a session's run."""
    session_id: str
    run_id: int
    status: str
    progress: int
    filename: Optional[str] = None
    page_count: int = 0
    instruction: Optional[str] = None
    crops: List[CropResponse] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def from_run(cls, session_id: str, run: Run) -> "RunResponse":
        return cls(
            session_id=session_id,
            run_id=run.run_id,
            status=run.status.value,
            progress=run.progress,
            filename=run.filename,
            page_count=run.page_count,
            instruction=run.instruction,
            crops=[CropResponse.from_crop(session_id, crop) for crop in run.crops],
            error=run.error,
            error_kind=run.error_kind,
        )
