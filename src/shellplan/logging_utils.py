"""Process-level logging setup for the command-line tool."""

import os
import sys

from loguru import logger

LOG_LEVEL_ENV = "SHELLPLAN_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"
LOG_FORMAT = "{time:HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"

_configured_level: str | None = None


def configure_logging(level: str | None = None) -> None:
    """Send log records to stderr at level, or at $SHELLPLAN_LOG_LEVEL."""
    global _configured_level
    level = (level or os.getenv(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    if level == _configured_level:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    _configured_level = level
