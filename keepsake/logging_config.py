"""Centralized logging configuration for keepsake."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from keepsake.config import settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Install a single stderr handler on the root logger.

    Safe to call repeatedly: previous handlers are replaced, so the handler
    always writes to the *current* ``sys.stderr``.

    Args:
        level: Level name (``"INFO"``, ``"DEBUG"`` …).  Defaults to
            ``settings.log_level``.
    """
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format=_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger for *name* (usually ``__name__``)."""
    return logging.getLogger(name)
