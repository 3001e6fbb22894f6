"""Logging initialization using loguru."""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> {message}"


def init_logging(level: str = "INFO", log_dir: str | Path | None = None) -> None:
    """Log to stderr, and to a rotating file under log_dir when given."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, backtrace=False, diagnose=False)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path / "trailpress_{time:YYYYMMDD}.log"),
            rotation="10 MB",
            retention="10 days",
            enqueue=True,
            backtrace=False,
            diagnose=False,
            level=level,
        )
