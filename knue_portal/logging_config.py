"""Logging configuration using loguru"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Configure loguru for the portal bridge.

    Args:
        verbose: Enable debug-level logging
        log_file: Optional file path for log output
    """
    logger.remove()

    log_level = "DEBUG" if verbose else "INFO"
    # stdout carries command output (menu JSON)
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | <level>{message}</level>",
        level=log_level,
        colorize=True,
    )

    # Full tracebacks of route-level failures only ever land here and on the console
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            level="DEBUG",
            rotation="50 MB",
            retention="14 days",
            compression="zip",
            backtrace=True,
            enqueue=True,
        )
        logger.info(f"Logging to file: {log_file}")


class InterceptHandler(logging.Handler):
    """Forward stdlib log records (uvicorn's) to loguru sinks"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def route_stdlib_logging(names: Iterable[str] = UVICORN_LOGGERS) -> None:
    """Replace the handlers of the named stdlib loggers with InterceptHandler"""
    for name in names:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False
