"""Logging setup for NetLens."""

from __future__ import annotations

import logging
from typing import Optional

from netlens.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Apply the configured log level to the ``netlens`` logger.

    Args:
        level: Level name overriding ``Settings.log_level``

    Returns:
        The package logger
    """
    level_name = (level or get_settings().log_level or "INFO").upper()
    logger = logging.getLogger("netlens")
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
