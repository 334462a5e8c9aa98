"""
Prompt templates for the exam cropper.
"""

from prompts.detection import (
    DETECTION_SYSTEM_INSTRUCTION,
    build_detection_prompt,
)

__all__ = [
    'DETECTION_SYSTEM_INSTRUCTION',
    'build_detection_prompt',
]
