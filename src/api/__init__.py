"""
API module for the exam cropper.

Provides the FastAPI application factory for web access.
"""

from api.app import create_app

__all__ = ['create_app']
