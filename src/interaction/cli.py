"""
CLI Interface for the exam cropper.

Handles console output with rich:
- Startup summary
- Errors with a suggested fix
- Results table and written files
"""

from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from core.models import Crop
from core.workflow_state import Run


# Semantic color palette
class Colors:
    """Semantic colors for consistent UI."""
    SUCCESS = "bright_green"
    WARNING = "yellow"
    ERROR = "red"
    INFO = "blue"
    PRIMARY = "cyan"
    DIM = "grey50"


# Suggested fixes per error kind
ERROR_SOLUTIONS = {
    "MissingAPIKeyError": "Set EXAM_CROPPER_GEMINI_API_KEY in the environment or in .env",
    "UnsupportedFormatError": "Use a PDF or an image (JPEG, PNG, WEBP, GIF, BMP, TIFF)",
    "DocumentDecodeError": "Check that the file opens in a viewer and is not password protected",
    "EmptyResultError": "Try a different instruction, e.g. \"every question with its options\"",
    "UpstreamError": "The model call failed; run the command again in a moment",
    "SchemaError": "The model answered in an unexpected format; run the command again",
}


class CLI:
    """
    Command-line interface for user interactions.

    Provides methods for:
    - Showing what is about to run
    - Displaying progress, errors and results
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def show_startup(self, document: Path, instruction: str, model: str, page_count: int):
        """Display compact startup screen with configuration."""
        config_lines = [
            f"[bold]📄 Document:[/bold]    {document.name} ({page_count} page{'s' if page_count != 1 else ''})",
            f"[bold]🔎 Instruction:[/bold] {instruction}",
            f"[bold]🤖 Model:[/bold]       {model}",
        ]
        self.console.print(Panel(
            "\n".join(config_lines),
            title="[bold cyan]Exam Cropper[/bold cyan]",
            border_style="cyan",
            padding=(0, 1)
        ))

    def show_success(self, message: str):
        """Display a success message."""
        self.console.print(f"[{Colors.SUCCESS}]✓ {message}[/{Colors.SUCCESS}]")

    def show_error(self, message: str, solution: Optional[str] = None):
        """
        Display an error message with optional solution guidance.

        Args:
            message: Error message
            solution: Optional solution or guidance
        """
        if solution:
            self.console.print(Panel(
                f"[red]✗ {message}[/red]\n\n"
                f"[bold]Solution:[/bold] {solution}",
                title="[bold red]Error[/bold red]",
                border_style="red",
                padding=(0, 1)
            ))
        else:
            self.console.print(f"[red]✗ {message}[/red]")

    def show_run_error(self, run: Run):
        """Display the failure carried by an ERROR run."""
        self.show_error(run.error or "Processing failed", ERROR_SOLUTIONS.get(run.error_kind or ""))

    def show_results(self, crops: Sequence[Crop], paths: Optional[List[Path]] = None):
        """Display one row per crop, with the file it was written to."""
        table = Table(title=f"{len(crops)} crop(s)", show_lines=False)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Label", style=Colors.PRIMARY)
        table.add_column("Page", justify="right")
        table.add_column("Size", justify="right")
        if paths:
            table.add_column("File", style=Colors.DIM)

        for position, crop in enumerate(crops, start=1):
            row = [
                str(position),
                crop.label,
                str(crop.page_index + 1),
                f"{crop.width}×{crop.height}",
            ]
            if paths:
                row.append(str(paths[position - 1]))
            table.add_row(*row)

        self.console.print(table)

    def show_export_results(self, archive_path: Path):
        """Display where the archive was written."""
        self.console.print(f"\n[bold]Archive:[/bold] {archive_path}")

    def create_progress(self) -> Progress:
        """Create a progress bar for operations."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console
        )
