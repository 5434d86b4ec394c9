"""Centralized logging configuration for processes hosting the engine."""

from __future__ import annotations

import logging

from escalade.core.config import AppSettings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(settings: AppSettings | None = None) -> None:
    """Configure the root logger with a single console handler.

    Level comes from ``settings.log_level``; unknown names fall back to INFO.
    Existing root handlers are replaced so repeated calls do not duplicate output.
    """
    if settings is None:
        settings = AppSettings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(handler)
