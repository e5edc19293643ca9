"""
Logging setup for the simulator: coloured console output and an optional
rotating log file.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logger(
    log_dir: Optional[str] = None,
    level: str = "INFO",
    rotation: str = "50 MB",
    retention: str = "30 days",
    enable_colors: bool = True,
) -> Optional[str]:
    """
    Replace loguru's handlers with a console sink and, when ``log_dir`` is
    given, a file sink.

    Returns:
        Path to the log file, or None when only the console is used.
    """
    logger.remove()

    colorize = enable_colors and sys.stderr.isatty()
    if colorize:
        console_format = (
            "<green>{time:HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<yellow>{line}</yellow> | "
            "<level>{message}</level>"
        )
    else:
        console_format = "{time:HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"
    logger.add(sys.stderr, level=level, format=console_format, colorize=colorize)

    if log_dir is None:
        return None

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"evosim_{timestamp}.log")
    logger.add(
        log_file,
        level=level,
        format=FILE_FORMAT,
        rotation=rotation,
        retention=retention,
        encoding="utf-8",
    )
    logger.debug("logging to {} at level {}", log_file, level)
    return log_file
