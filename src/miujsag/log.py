"""Logging setup for applications embedding miujsag."""

from __future__ import annotations

import logging

from miujsag.config import Settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> logging.Logger:
    """Attach one stream handler to the `miujsag` logger at the configured level.

    Calling it again only updates the level.
    """
    logger = logging.getLogger("miujsag")
    level = logging.getLevelName(settings.app.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger
