"""
Logging setup: loguru everywhere, rendered through rich on the console.
"""

import logging
import os
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

ENV_LOG_LEVEL = "AUTOSEND_LOG_LEVEL"
ENV_LOG_FILE = "AUTOSEND_LOG_FILE"


class InterceptHandler(logging.Handler):
    """Redirects standard logging records (web3, urllib3, ...) to loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None, console: Optional[Console] = None):
    """
    Console sink via RichHandler (shares the progress bar's Console so lines
    do not tear it), optional rotating file sink, stdlib logging intercepted.
    """
    level = (level or os.getenv(ENV_LOG_LEVEL) or "WARNING").upper()
    log_file = log_file or os.getenv(ENV_LOG_FILE)

    logger.remove()
    logger.add(
        RichHandler(console=console, rich_tracebacks=True, markup=False, show_path=False),
        level=level,
        format="{message}",
    )
    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="1 week",
            level="DEBUG",
            format="{time:YYYY-MM-DD at HH:mm:ss} | {level} | {name}:{function}:{line} - {message}",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logger
