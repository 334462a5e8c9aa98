"""
Centralized logging configuration for the exam cropper.

Library modules log through the stdlib ``logging`` module; once
setup_structured_logging() has run, those records are routed into Loguru so
the CLI and the API share one set of sinks.
"""

import inspect
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "PIL", "fitz", "google_genai", "multipart")


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller that emitted the record so Loguru reports it
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_structured_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    serialize: bool = False,
) -> None:
    """
    Configure Loguru sinks and route stdlib logging into them.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a rotating log file
        serialize: Emit JSON records on stderr (API deployments)
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        serialize=serialize,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name} | {message}",
        level=level,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            serialize=True,
            level="DEBUG",    # Always debug to file
            rotation="10 MB",
            retention="30 days",
            compression="zip"
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Suppress noisy third-party loggers
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

