"""
Middleware for the exam cropper API.
"""

from middleware.error_handler import register_exception_handlers

__all__ = ['register_exception_handlers']
