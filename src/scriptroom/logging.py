"""Logging configuration for the scenario service."""

from __future__ import annotations

import logging

logger = logging.getLogger("scriptroom")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Configure the ``scriptroom`` logger hierarchy.

    Args:
        level: Level name (``"DEBUG"``, ``"INFO"``...) or numeric level.
    """

    logging.basicConfig(format=LOG_FORMAT)
    logger.setLevel(level)


__all__ = ["LOG_FORMAT", "configure_logging", "logger"]
