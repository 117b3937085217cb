"""
Logging configuration for TripSync.

Uses loguru for structured, colorful logging with rotation and filtering.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .config import resolve_path

if TYPE_CHECKING:
    from .config import TripSyncConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(config: TripSyncConfig | None = None) -> None:
    """
    Configure logging for TripSync.

    Args:
        config: Optional TripSync configuration. If not provided, uses defaults.
    """
    # Remove default handler
    logger.remove()

    log_level = "INFO"
    log_to_file = True
    log_dir: Path = resolve_path("data") / "logs"
    if config:
        log_level = config.general.log_level
        if config.general.debug:
            log_level = "DEBUG"
        log_to_file = config.general.log_to_file
        log_dir = resolve_path(config.general.data_dir) / "logs"

    # Console handler with colors
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    if log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)

        # File handler for all logs
        logger.add(
            log_dir / "tripsync_{time:YYYY-MM-DD}.log",
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="00:00",  # Rotate at midnight
            retention="7 days",
            compression="zip",
            backtrace=True,
            diagnose=True,
        )

        # Separate file for sync failures and other errors
        logger.add(
            log_dir / "tripsync_errors_{time:YYYY-MM-DD}.log",
            format=FILE_FORMAT,
            level="WARNING",
            rotation="00:00",
            retention="30 days",
            compression="zip",
            backtrace=True,
            diagnose=True,
        )

    logger.info("TripSync logging initialized")


__all__ = ["logger", "setup_logging"]
