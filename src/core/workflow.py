"""
Crop workflow orchestration.

Drives one session through upload and processing: rasterize the document
once, then for each page detect regions and crop them, strictly in order.
Every state change is published as a new Run to the registered callbacks.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from ai.base_provider import BaseProvider
from config.constants import (
    BOX_PADDING,
    CROP_JPEG_QUALITY,
    MULTI_PAGE_LABEL,
    PAGE_JPEG_QUALITY,
    PDF_RENDER_SCALE,
    PROGRESS_DETECTION_REQUESTED,
    PROGRESS_DETECTION_RETURNED,
    PROGRESS_PAGE_COMPLETE,
    PROGRESS_START,
)
from config.settings import Settings
from core.exceptions import (
    CropperError,
    DocumentDecodeError,
    EmptyResultError,
    InvalidRegionError,
    RunStateError,
)
from core.models import Crop, Page
from core.workflow_state import Run, RunStatus
from export.archive import build_archive
from vision.page_rasterizer import load_pages
from vision.region_cropper import crop_region_async, round_half_up

logger = logging.getLogger(__name__)

EMPTY_RESULT_MESSAGE = (
    "No regions matched the instruction. Try describing what to find differently."
)


@dataclass
class WorkflowCallbacks:
    """Callbacks for workflow events. Both may be plain or async callables."""
    on_transition: Optional[Callable[[Run], Any]] = None
    on_progress: Optional[Callable[[Run], Any]] = None


@dataclass
class WorkflowConfig:
    """Configuration for the crop workflow."""
    render_scale: float = PDF_RENDER_SCALE
    page_jpeg_quality: int = PAGE_JPEG_QUALITY
    box_padding: int = BOX_PADDING
    crop_jpeg_quality: int = CROP_JPEG_QUALITY
    multi_page_label: str = MULTI_PAGE_LABEL

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkflowConfig":
        return cls(
            render_scale=settings.render_scale,
            page_jpeg_quality=settings.page_jpeg_quality,
            box_padding=settings.box_padding,
            crop_jpeg_quality=settings.crop_jpeg_quality,
            multi_page_label=settings.multi_page_label,
        )


class CropWorkflow:
    """
    Orchestrates upload and detect-and-crop runs for one session.

    States:
        IDLE -> UPLOADING -> IDLE | ERROR
        IDLE -> PROCESSING -> SUCCESS | ERROR

    Loading a new document or resetting while a run is in flight makes that
    run stale: when it resolves, its results are dropped instead of
    overwriting the newer state.
    """

    def __init__(
        self,
        detector_factory: Callable[[], BaseProvider],
        config: Optional[WorkflowConfig] = None,
        callbacks: Optional[WorkflowCallbacks] = None,
    ):
        """
        Initialize workflow.

        Args:
            detector_factory: Builds the region detector for a run
            config: Workflow configuration
            callbacks: Event callbacks
        """
        self.detector_factory = detector_factory
        self.config = config or WorkflowConfig()
        self.callbacks = callbacks or WorkflowCallbacks()

        self.run = Run()
        self._pages: List[Page] = []
        self._generation = 0

    @property
    def pages(self) -> Tuple[Page, ...]:
        return tuple(self._pages)

    @property
    def is_processing(self) -> bool:
        return self.run.status == RunStatus.PROCESSING

    # ==================== State publication ====================

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _publish(self, run: Run, generation: int) -> bool:
        """
        Store a new Run and notify subscribers.

        Returns:
            False when the run is stale and nothing was published
        """
        if not self._is_current(generation):
            return False

        previous = self.run
        self.run = run

        if run.status != previous.status or run.run_id != previous.run_id:
            callback = self.callbacks.on_transition
        else:
            callback = self.callbacks.on_progress

        if callback:
            result = callback(run)
            if asyncio.iscoroutine(result):
                await result
        return True

    async def _advance(self, generation: int, progress: float) -> bool:
        return await self._publish(
            self.run.with_progress(round_half_up(progress)), generation
        )

    # ==================== Operations ====================

    async def load_document(self, data: bytes, filename: Optional[str] = None) -> Run:
        """
        Rasterize an uploaded document, replacing any previous one.

        Args:
            data: Raw file bytes (PDF or image)
            filename: Original file name

        Returns:
            IDLE run with page_count set, or ERROR run on decode failure
        """
        generation = self._next_generation()
        self._pages = []
        await self._publish(
            Run(run_id=generation, status=RunStatus.UPLOADING, filename=filename),
            generation
        )

        try:
            pages = await load_pages(
                data,
                filename,
                scale=self.config.render_scale,
                jpeg_quality=self.config.page_jpeg_quality,
            )
        except DocumentDecodeError as e:
            logger.warning(f"Could not read {filename or 'document'}: {e}")
            await self._publish(self.run.with_error(e), generation)
            return self.run

        if not self._is_current(generation):
            return self.run

        self._pages = pages
        logger.info(f"Loaded {filename or 'document'}: {len(pages)} page(s)")
        await self._publish(
            Run(
                run_id=generation,
                status=RunStatus.IDLE,
                filename=filename,
                page_count=len(pages),
            ),
            generation
        )
        return self.run

    def _label_for(self, label: str, page_index: int, page_count: int) -> str:
        if page_count > 1:
            return self.config.multi_page_label.format(page=page_index + 1, label=label)
        return label

    async def process(self, instruction: str) -> Run:
        """
        Detect and crop regions on every loaded page.

        Args:
            instruction: Free-text description of what to extract

        Returns:
            SUCCESS run with crops, or ERROR run with the first failure

        Raises:
            RunStateError: If no document is loaded, the instruction is blank
                or a run is already processing
        """
        if self.is_processing:
            raise RunStateError("A run is already in progress")
        if not self._pages:
            raise RunStateError("No document loaded")
        if not instruction or not instruction.strip():
            raise RunStateError("Instruction is empty")

        generation = self._next_generation()
        pages = list(self._pages)
        page_count = len(pages)

        await self._publish(
            Run(
                run_id=generation,
                status=RunStatus.PROCESSING,
                progress=PROGRESS_START,
                filename=self.run.filename,
                page_count=page_count,
                instruction=instruction,
            ),
            generation
        )

        try:
            crops = await self._process_pages(pages, instruction, generation)
        except CropperError as e:
            logger.error(f"Run {generation} failed: {e}")
            await self._publish(self.run.with_error(e), generation)
            return self.run
        except Exception as e:
            logger.exception(f"Run {generation} crashed")
            await self._publish(self.run.with_error(e), generation)
            raise

        if crops is None:
            # Superseded by a newer load, process or reset
            return self.run

        await self._publish(
            self.run.with_crops(tuple(crops)).with_progress(100).with_status(RunStatus.SUCCESS),
            generation
        )
        logger.info(f"Run {generation} produced {len(crops)} crop(s)")
        return self.run

    async def _process_pages(
        self,
        pages: List[Page],
        instruction: str,
        generation: int
    ) -> Optional[List[Crop]]:
        """Returns None as soon as the run turns stale."""
        detector = self.detector_factory()
        page_count = len(pages)
        step = 100 / page_count
        crops: List[Crop] = []

        for position, page in enumerate(pages):
            base = position * step

            if not await self._advance(generation, base + step * PROGRESS_DETECTION_REQUESTED):
                return None
            regions = await detector.detect(page, instruction)
            if not await self._advance(generation, base + step * PROGRESS_DETECTION_RETURNED):
                return None

            for region in regions:
                label = self._label_for(region.label, page.index, page_count)
                try:
                    crop = await crop_region_async(
                        page,
                        region.box_2d,
                        label,
                        padding=self.config.box_padding,
                        quality=self.config.crop_jpeg_quality,
                    )
                except InvalidRegionError as e:
                    logger.warning(f"Skipping region on page {page.index + 1}: {e}")
                    continue
                crops.append(crop)

            if not await self._advance(generation, base + step * PROGRESS_PAGE_COMPLETE):
                return None

        if not crops:
            raise EmptyResultError(EMPTY_RESULT_MESSAGE)
        return crops

    async def reset(self) -> Run:
        """Drop the document and results, back to an empty IDLE run."""
        generation = self._next_generation()
        self._pages = []
        await self._publish(Run(run_id=generation), generation)
        return self.run

    def build_archive(self) -> bytes:
        """ZIP of the current run's crops."""
        return build_archive(self.run.crops)
