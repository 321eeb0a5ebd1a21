"""Logging configuration helpers for the attempt engine."""

from __future__ import annotations

import logging
from logging import Logger

from quiz_attempts.constants.network_constants import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL) -> Logger:
    """Configure basic logging for the service and return the package logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("quiz_attempts")
