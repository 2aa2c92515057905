"""Logging for the ``roombook`` package.

Only the package logger is configured, so the host process (uvicorn, pytest)
keeps control of the root logger. Records still propagate to it.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from roombook.utils.config import get_settings

PACKAGE_LOGGER = "roombook"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the stdout handler once and set the package level.

    The level defaults to ``ROOMBOOK_LOG_LEVEL``. Calling again with an
    explicit *level* changes it; calling again without one does nothing.
    """
    global _handler
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None and level is None:
        return package_logger

    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(_handler)

    package_logger.setLevel((level or get_settings().log_level).upper())
    return package_logger


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
