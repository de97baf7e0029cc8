"""
Logging for the compiler, store adapter and API.

One stdout handler is attached to the ``chronoquery`` logger; module loggers
are its children and propagate to it.
"""
from __future__ import annotations

import logging
import sys

from chronoquery.core.config import get_settings

ROOT_LOGGER = "chronoquery"


def _configure_root(level: int) -> None:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        fmt = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(fmt)
        root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Return *name* as a logger under the ``chronoquery`` hierarchy."""
    settings = get_settings()
    _configure_root(getattr(logging, settings.log_level.upper(), logging.INFO))
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
