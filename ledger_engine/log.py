"""Logging setup shared by every engine module."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .config import get_settings


_LOGGER_INITIALIZED = False

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the ``ledger_engine`` logger hierarchy once.

    Only the package logger is touched, so applications embedding the engine
    keep control of the root logger.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()

    package_logger = logging.getLogger("ledger_engine")
    package_logger.setLevel(resolved_level)
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
