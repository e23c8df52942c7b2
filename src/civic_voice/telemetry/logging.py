"""Logging setup for command-line and host usage."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "civic_voice"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach a rich console handler to the package logger once and set its level."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger
