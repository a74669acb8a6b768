"""
Logging for the document repository.

One root logger ("document_repository") owns the handlers; modules log through
children of it (``get_logger(__name__)``) so every record carries the module
that produced it, e.g. ``document_repository.services.download_accounting``.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

import config

ROOT_LOGGER_NAME = "document_repository"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Attach console and (optionally) rotating file handlers to the root logger.

    Calling it again replaces the handlers rather than stacking them.

    Args:
        log_file: Path to log file (if None, only console logging)
        level: Logging level
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root


def get_logger(module_name: str) -> logging.Logger:
    """Child of the repository logger for one module."""
    if module_name == "__main__":
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")


configure_logging(
    log_file=Path(config.LOG_FILE) if config.LOG_FILE else None,
    level=getattr(logging, config.LOG_LEVEL, logging.INFO)
)
