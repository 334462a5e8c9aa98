"""
Console interaction for the exam cropper CLI.
"""

from interaction.cli import CLI
from interaction.live_progress import RunProgressDisplay

__all__ = ['CLI', 'RunProgressDisplay']
