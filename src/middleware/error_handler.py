"""
Global exception handling for the exam cropper API.

Maps domain errors to HTTP responses; anything unexpected is logged with its
traceback and answered with a generic message.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import (
    ConfigurationError,
    CropperError,
    DocumentDecodeError,
    RunStateError,
    UnsupportedFormatError,
    UpstreamError,
)

# Most specific classes first
ERROR_STATUS_CODES = (
    (RunStateError, status.HTTP_409_CONFLICT),
    (UnsupportedFormatError, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE),
    (DocumentDecodeError, 422),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
)


def status_code_for(exc: CropperError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def cropper_exception_handler(request: Request, exc: CropperError) -> JSONResponse:
    """Answer a domain error with its message and kind."""
    code = status_code_for(exc)
    logger.warning(f"{request.method} {request.url.path} -> {code}: {exc.message}")
    return JSONResponse(
        status_code=code,
        content={"detail": exc.message, "kind": type(exc).__name__}
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log uncaught exceptions and return a generic message."""
    logger.opt(exception=exc).error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred."}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CropperError, cropper_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
