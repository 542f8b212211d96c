# backend/core/logging.py

import logging
import sys
from typing import Dict, Optional


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers and the most verbose level we let through from them
LIBRARY_LEVELS: Dict[str, int] = {
    "asyncpg": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def resolve_level(name: Optional[str]) -> int:
    """Map a LOG_LEVEL string to a logging level, falling back to INFO."""
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level_name: Optional[str] = None) -> None:
    """
    Configure logging for the relay process.

    Chat events (connect, join, disconnect) log at INFO, denials at
    WARNING, store failures at ERROR. Output goes to stdout so the
    hosting platform collects it.

    Args:
        level_name: Root level name, usually settings.LOG_LEVEL
    """
    level = resolve_level(level_name)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Uvicorn may already have installed handlers
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(handler)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(max(level, library_level))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module logger, e.g. ``logger = get_logger(__name__)``."""
    return logging.getLogger(name)
