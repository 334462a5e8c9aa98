"""
FastAPI application for the exam cropper.

Provides a web API to upload a document, run detection and cropping, and
download the crops one by one or as a ZIP archive.
"""

import time
from contextlib import asynccontextmanager
from typing import Callable, Dict, Optional
from urllib.parse import quote

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from ai.base_provider import BaseProvider
from ai.provider_factory import create_detector
from api.health import router as health_router
from api.schemas import ProcessRequest, RunResponse
from config.logging_config import setup_structured_logging
from config.settings import Settings, get_settings
from core.exceptions import RunStateError, UnsupportedFormatError
from core.models import generate_id
from core.workflow import CropWorkflow, WorkflowCallbacks, WorkflowConfig
from core.workflow_state import Run, RunStatus
from export.archive import archive_download_name, crop_download_name
from middleware.error_handler import register_exception_handlers


def _content_disposition(filename: str) -> str:
    """Attachment header that survives non-ASCII labels."""
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


# ============================================================================
# Request Logging Middleware
# ============================================================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with correlation ID, method, path, status, latency."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Request-ID", "unknown")
        start_time = time.time()

        with logger.contextualize(correlation_id=correlation_id):
            logger.info(f"{request.method} {request.url.path}")

            response = await call_next(request)

            latency_ms = (time.time() - start_time) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({latency_ms:.1f}ms)"
            )
            return response


# ============================================================================
# Application Factory
# ============================================================================

def create_app(
    detector_factory: Optional[Callable[[], BaseProvider]] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        detector_factory: Builds the region detector for each run
            (default: Gemini from settings)
        settings: Settings override (default: cached settings)

    Returns:
        FastAPI application instance
    """
    settings = settings or get_settings()
    detector_factory = detector_factory or (lambda: create_detector(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_structured_logging(level=settings.log_level, log_file=settings.log_file, serialize=True)
        if not settings.gemini_api_key:
            logger.warning("No Gemini API key configured; processing will fail until one is set")
        yield

    app = FastAPI(
        title="Exam Cropper",
        description="Detect and crop questions or other regions from exam pages with a vision model",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiting guards the paid detection endpoint
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Too many requests. Try again later."},
        )

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    # Add request logging middleware (logs all requests with correlation ID)
    app.add_middleware(RequestLoggingMiddleware)

    # Add correlation ID middleware (generates/reads X-Request-ID header)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(health_router, tags=["health"])

    # In-memory sessions, one workflow each
    active_sessions: Dict[str, CropWorkflow] = {}
    workflow_config = WorkflowConfig.from_settings(settings)

    def get_workflow(session_id: str) -> CropWorkflow:
        workflow = active_sessions.get(session_id)
        if workflow is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return workflow

    def log_transition(session_id: str) -> Callable[[Run], None]:
        def callback(run: Run) -> None:
            logger.info(
                f"Session {session_id} run {run.run_id}: {run.status.value} ({run.progress}%)"
            )
        return callback

    # ============================================================================
    # Routes
    # ============================================================================

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Exam Cropper",
            "version": "1.0.0",
            "docs": "/docs"
        }

    @app.post("/api/sessions", response_model=RunResponse, status_code=status.HTTP_201_CREATED)
    async def create_session():
        """Create an empty session. Upload a document next."""
        session_id = generate_id()
        workflow = CropWorkflow(
            detector_factory=detector_factory,
            config=workflow_config,
            callbacks=WorkflowCallbacks(on_transition=log_transition(session_id)),
        )
        active_sessions[session_id] = workflow
        return RunResponse.from_run(session_id, workflow.run)

    @app.post("/api/sessions/{session_id}/upload", response_model=RunResponse)
    async def upload_document(session_id: str, file: UploadFile = File(...)):
        """
        Upload a PDF or an image and rasterize it.

        Replaces any previous document and results of the session.
        """
        workflow = get_workflow(session_id)

        data = await file.read()
        if len(data) > settings.max_upload_size:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum {settings.max_upload_size // (1024 * 1024)} MB."
            )

        run = await workflow.load_document(data, file.filename)
        if run.status == RunStatus.ERROR:
            code = 415 if run.error_kind == UnsupportedFormatError.__name__ else 422
            return JSONResponse(
                status_code=code,
                content=RunResponse.from_run(session_id, run).model_dump(),
            )
        return RunResponse.from_run(session_id, run)

    @app.post("/api/sessions/{session_id}/process", response_model=RunResponse)
    @limiter.limit(settings.process_rate_limit)
    async def process_document(request: Request, session_id: str, body: ProcessRequest):
        """
        Detect regions on every page and crop them.

        The returned run is SUCCESS with crops, or ERROR with a message.
        """
        workflow = get_workflow(session_id)
        run = await workflow.process(body.instruction)
        return RunResponse.from_run(session_id, run)

    @app.get("/api/sessions/{session_id}", response_model=RunResponse)
    async def get_session(session_id: str):
        """Current run state of a session."""
        return RunResponse.from_run(session_id, get_workflow(session_id).run)

    @app.get("/api/sessions/{session_id}/crops/{crop_id}")
    async def download_crop(session_id: str, crop_id: str):
        """Download one crop as a JPEG named after its label."""
        crop = get_workflow(session_id).run.find_crop(crop_id)
        if crop is None:
            raise HTTPException(status_code=404, detail="Crop not found")

        return Response(
            content=crop.image_bytes,
            media_type=crop.mime_type,
            headers={"Content-Disposition": _content_disposition(crop_download_name(crop))}
        )

    @app.get("/api/sessions/{session_id}/archive")
    async def download_archive(session_id: str):
        """Download every crop of the last successful run as a ZIP."""
        workflow = get_workflow(session_id)
        if workflow.run.status != RunStatus.SUCCESS:
            raise RunStateError("No crops to download yet")

        return Response(
            content=workflow.build_archive(),
            media_type="application/zip",
            headers={
                "Content-Disposition": _content_disposition(
                    archive_download_name(workflow.run.filename)
                )
            }
        )

    @app.delete("/api/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_session(session_id: str):
        """Reset and drop a session."""
        workflow = get_workflow(session_id)
        await workflow.reset()
        del active_sessions[session_id]
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app
