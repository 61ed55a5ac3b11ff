"""Logging setup. Everything goes to stderr; stdout is never written to."""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "grammarly_optimizer"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    try:
        return _LEVELS[level.lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown log level: {level}") from exc


def configure_logging(level: str | int = "info") -> logging.Logger:
    """Attach a single stderr handler to the package logger.

    Calling it again only adjusts the level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(resolve_level(level))

    if not any(getattr(h, "_grammarly_optimizer", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
        handler._grammarly_optimizer = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
