"""Logging configuration and setup."""

import sys
from typing import Optional

from loguru import logger

from soundshelf.core.config import settings

# request_id is bound by the API middleware, scan_id by the scan coordinator
CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | <magenta>{extra[scan_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[request_id]} | {extra[scan_id]} | "
    "{name}:{function}:{line} - {message}"
)


def setup_logging(level: Optional[str] = None) -> None:
    """Configures Loguru logging for console and file output.

    Removes the default handler, logs to stderr, and writes a rotated,
    compressed log file under ``DATA_DIR/logs``. File writes are enqueued so
    scan worker threads never block on disk.

    Args:
        level: Overrides ``settings.LOG_LEVEL`` when given.
    """
    level = level or settings.LOG_LEVEL
    logger.remove()
    # Defaults for lines logged outside a request or a scan
    logger.configure(extra={"request_id": "-", "scan_id": "-"})

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    log_file = settings.DATA_DIR / "logs" / "soundshelf.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_file),
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        compression="zip",
        level=level,
        enqueue=True,
        backtrace=True,
        diagnose=False,
        format=FILE_FORMAT,
    )

    logger.debug(f"Logging initialized at {level}. Data Dir: {settings.DATA_DIR}")
