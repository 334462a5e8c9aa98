"""
Main CLI entry point for the exam cropper.

Usage:
    python src/main.py crop exam.pdf --prompt "every question"
    python src/main.py crop page.jpg --prompt "the reading passage" --zip
    python src/main.py api --port 8000
"""

import argparse
import asyncio
import sys
from pathlib import Path

from ai.provider_factory import create_detector
from config.logging_config import setup_structured_logging
from config.settings import get_settings
from core.workflow import CropWorkflow, WorkflowConfig
from core.workflow_state import RunStatus
from export.archive import archive_download_name, write_crops
from interaction.cli import CLI
from interaction.live_progress import RunProgressDisplay


def validate_document_path(path_str: str) -> tuple[bool, str]:
    """
    Validate an input document path.

    Args:
        path_str: Path string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not path_str or not path_str.strip():
        return False, "Empty path provided"

    path = Path(path_str)
    if not path.exists():
        return False, f"File not found: {path_str}"
    if not path.is_file():
        return False, f"Not a file: {path_str}"
    return True, ""


async def command_crop(args) -> int:
    """Detect and crop regions of one document."""
    cli = CLI()
    settings = get_settings()

    is_valid, error = validate_document_path(args.document)
    if not is_valid:
        cli.show_error(error)
        return 1
    if not args.prompt.strip():
        cli.show_error("The instruction cannot be empty", "Pass --prompt \"every question\"")
        return 1

    document = Path(args.document)
    model = args.model or settings.gemini_model
    display = RunProgressDisplay(cli.create_progress())
    workflow = CropWorkflow(
        detector_factory=lambda: create_detector(settings, model=model),
        config=WorkflowConfig.from_settings(settings),
        callbacks=display.callbacks(),
    )

    run = await workflow.load_document(document.read_bytes(), document.name)
    if run.status == RunStatus.ERROR:
        cli.show_run_error(run)
        return 1

    cli.show_startup(document, args.prompt, model, run.page_count)

    with display:
        run = await workflow.process(args.prompt)

    if run.status != RunStatus.SUCCESS:
        cli.show_run_error(run)
        return 1

    output_dir = Path(args.output) / document.stem
    paths = write_crops(run.crops, output_dir)
    cli.show_results(run.crops, paths)

    if args.zip:
        archive_path = Path(args.output) / archive_download_name(document.name)
        archive_path.write_bytes(workflow.build_archive())
        cli.show_export_results(archive_path)

    cli.show_success(f"{len(run.crops)} crop(s) written to {output_dir}")
    return 0


def command_api(args) -> int:
    """Start the API server."""
    import uvicorn

    cli = CLI()
    cli.console.print("[bold green]Starting API server[/bold green]")
    cli.console.print(f"Host: {args.host}")
    cli.console.print(f"Port: {args.port}")
    cli.console.print(f"Docs: http://{args.host}:{args.port}/docs")

    uvicorn.run(
        "api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        workers=args.workers
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Exam Cropper - cut questions and other regions out of exam pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s crop exam.pdf --prompt "every question"
  %(prog)s crop exam.pdf --prompt "every question" --zip --output ./crops
  %(prog)s crop scan.png --prompt "the diagram in exercise 3"
  %(prog)s api --port 8000

The Gemini API key is read from EXAM_CROPPER_GEMINI_API_KEY (or .env).
        """
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: from settings)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Crop command
    crop_parser = subparsers.add_parser("crop", help="Detect and crop regions of a document")
    crop_parser.add_argument("document", help="PDF or image file")
    crop_parser.add_argument(
        "--prompt", "-p",
        required=True,
        help="What to extract, e.g. \"every question\""
    )
    crop_parser.add_argument(
        "--output", "-o",
        default="outputs",
        help="Output directory"
    )
    crop_parser.add_argument(
        "--zip",
        action="store_true",
        help="Also write a ZIP archive of all crops"
    )
    crop_parser.add_argument(
        "--model",
        help="Override the Gemini model"
    )

    # API command
    api_parser = subparsers.add_parser("api", help="Start API server")
    api_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to"
    )
    api_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to"
    )
    api_parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of workers"
    )
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    setup_structured_logging(level=(args.log_level or settings.log_level).upper(), log_file=settings.log_file)

    if args.command == "crop":
        return asyncio.run(command_crop(args))
    elif args.command == "api":
        return command_api(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
