"""Logging setup for commit-tracer.

All modules obtain their logger through :func:`get_logger`, which attaches a
single stream handler to the package logger the first time it is called.
"""

from __future__ import annotations

import logging
import os

LOGGER_NAME = "commit_tracer"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_handler_attached = False


def _resolve_level() -> int:
    level_name = os.getenv("COMMIT_TRACER_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it when ``name`` is given."""
    global _handler_attached

    root = logging.getLogger(LOGGER_NAME)
    if not _handler_attached:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        root.setLevel(_resolve_level())
        _handler_attached = True

    if name is None or name == LOGGER_NAME:
        return root
    if name.startswith(f"{LOGGER_NAME}."):
        name = name[len(LOGGER_NAME) + 1 :]
    return root.getChild(name)


def setup_logging(level: int | str | None = None, verbose: bool = False) -> logging.Logger:
    """Configure the package log level.

    Args:
        level: Explicit level (name or number). Overrides the environment.
        verbose: Shortcut for DEBUG when no level is given

    Returns:
        The package logger
    """
    logger = get_logger()
    if level is None:
        level = logging.DEBUG if verbose else _resolve_level()
    elif isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    return logger
