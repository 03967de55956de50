"""
Import logging: a plain console narrative plus a detailed rotating ``import.log``.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
CONSOLE_FORMAT = "%(levelname)s %(message)s"
LOG_FILENAME = "import.log"

# Client libraries log every HTTP request at INFO.
NOISY_LOGGERS = ("openai", "httpx", "httpcore", "PIL")


def setup_logging(
    log_dir: Path,
    level: str = "INFO",
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """Route the import narrative to the console and ``<log_dir>/import.log``; returns the log path."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    logging.basicConfig(level=level.upper(), handlers=[file_handler, console], force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path
