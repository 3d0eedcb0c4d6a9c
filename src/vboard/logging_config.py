"""
vboard Logging Configuration

Configurable logging with debug mode support. Components log through
``get_logger("<component>")`` and attach action context with ``extra``.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


# Check for debug mode
DEBUG_MODE = os.environ.get("VB_DEBUG", "").lower() in ("1", "true", "yes")

CONTEXT_FIELDS = ("action", "id", "path", "dry_run", "owner", "from_status", "to_status")


class ContextFormatter(logging.Formatter):
    """Formatter that appends action context passed through ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if context:
            message = f"{message} [{' '.join(context)}]"
        return message


def setup_logging(
    level: Optional[int] = None,
    log_file: Optional[Path] = None,
    quiet: bool = False
) -> logging.Logger:
    """Set up logging configuration.

    Args:
        level: Logging level (default: DEBUG if VB_DEBUG, else WARNING)
        log_file: Optional path to log file
        quiet: If True, suppress console output

    Returns:
        Configured logger
    """
    if level is None:
        level = logging.DEBUG if DEBUG_MODE else logging.WARNING

    logger = logging.getLogger("vboard")
    logger.setLevel(logging.DEBUG if log_file else level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)

        if DEBUG_MODE:
            console_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        else:
            console_format = "%(message)s"

        console_handler.setFormatter(ContextFormatter(console_format))
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_format = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
        file_handler.setFormatter(ContextFormatter(file_format))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = "vboard") -> logging.Logger:
    """Get a logger under the vboard namespace.

    Args:
        name: Logger name (will be prefixed with 'vboard.')

    Returns:
        Logger instance
    """
    if not name.startswith("vboard"):
        name = f"vboard.{name}"
    return logging.getLogger(name)


# Environment variable documentation
ENV_VARS = {
    "VB_DEBUG": {
        "description": "Enable debug mode with verbose logging",
        "values": ["1", "true", "yes"],
        "default": "false"
    },
    "VB_ROOT": {
        "description": "Workspace root (directory containing .virtualboard)",
        "default": "current directory"
    },
    "VB_DRY_RUN": {
        "description": "Compute and report changes without touching the filesystem",
        "values": ["1", "true", "yes"],
        "default": "false"
    },
    "VB_ID_PREFIX": {
        "description": "Prefix used when allocating feature ids",
        "default": "FTR"
    },
}
