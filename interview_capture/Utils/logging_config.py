"""
Logging configuration for the capture pipeline.

Call configure_logging() once at startup; library modules only import
`logger` from loguru and never add sinks themselves.
"""

import os
import sys
from typing import Optional

from loguru import logger

from ..config import get_cli_setting


PREVIEW_TRUNCATE_LENGTH = int(os.environ.get("CAPTURE_LOG_PREVIEW_LENGTH", "80"))


def truncate_preview(text: str, max_length: Optional[int] = None) -> str:
    """
    Truncate free text (transcripts, recognized text) before it is logged.

    Args:
        text: Text to truncate
        max_length: Maximum length (defaults to PREVIEW_TRUNCATE_LENGTH)

    Returns:
        Truncated text with ellipsis if needed
    """
    if max_length is None:
        max_length = PREVIEW_TRUNCATE_LENGTH
    text = " ".join(text.split())
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}..."


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> str:
    """
    Configure loguru sinks.

    The level comes from the argument, then CAPTURE_LOG_LEVEL, then [logging] log_level.
    A rotating file sink is added when a log file is configured.

    Returns:
        The effective log level
    """
    level = (level or os.environ.get("CAPTURE_LOG_LEVEL")
             or get_cli_setting("logging", "log_level", "INFO")).upper()
    log_file = log_file or get_cli_setting("logging", "log_file", "")

    logger.remove()  # Remove default handler
    logger.add(
        sink=sys.stderr,
        level=level,
        colorize=True,
    )

    if log_file:
        logger.add(
            sink=log_file,
            level=level,
            rotation=get_cli_setting("logging", "log_rotation", "10 MB"),
            retention=get_cli_setting("logging", "log_retention", "7 days"),
            compression="zip",
            enqueue=True,
        )

    logger.info(f"Capture logging configured: level={level}, file={log_file or 'none'}")
    return level
