"""
Real-time progress display for a crop run.

Subscribes to the workflow's Run snapshots and mirrors them on a rich
progress bar.

Usage:
    display = RunProgressDisplay(cli.create_progress())
    workflow = CropWorkflow(factory, callbacks=display.callbacks())
    with display:
        await workflow.process("every question")
"""

from typing import Optional

from rich.progress import Progress, TaskID

from core.workflow import WorkflowCallbacks
from core.workflow_state import Run, RunStatus

STATUS_DESCRIPTIONS = {
    RunStatus.IDLE: "[dim]Ready[/dim]",
    RunStatus.UPLOADING: "[yellow]Reading document[/yellow]",
    RunStatus.PROCESSING: "[yellow]Detecting regions[/yellow]",
    RunStatus.SUCCESS: "[green]Done[/green]",
    RunStatus.ERROR: "[red]Failed[/red]",
}


class RunProgressDisplay:
    """Rich progress bar driven by Run transitions."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self._task: Optional[TaskID] = None

    def __enter__(self) -> "RunProgressDisplay":
        self.progress.start()
        self._task = self.progress.add_task(STATUS_DESCRIPTIONS[RunStatus.IDLE], total=100)
        return self

    def __exit__(self, *args):
        self.progress.stop()

    def update(self, run: Run) -> None:
        if self._task is None:
            return

        description = STATUS_DESCRIPTIONS[run.status]
        if run.status == RunStatus.PROCESSING and run.page_count > 1:
            description = f"{description} [dim]({run.page_count} pages)[/dim]"

        self.progress.update(self._task, completed=run.progress, description=description)

    def callbacks(self) -> WorkflowCallbacks:
        return WorkflowCallbacks(on_transition=self.update, on_progress=self.update)
