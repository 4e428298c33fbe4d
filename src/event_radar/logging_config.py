"""Centralised logging configuration.

The CLI calls ``setup_logging`` once at startup. Other modules simply call
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging

from event_radar.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def setup_logging(level: str | int | None = None) -> None:
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
