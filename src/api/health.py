"""
Health check endpoint for the exam cropper.

Provides system health status for load balancers and monitoring.
"""

from fastapi import APIRouter

from config.settings import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        JSON with status, version, and whether a detector credential is set.
        The credential is reported, not required: uploads work without it.
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "version": "1.0.0",
        "detector": "configured" if settings.gemini_api_key else "missing_api_key",
        "model": settings.gemini_model,
    }
