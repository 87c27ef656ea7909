"""Shared logging configuration helpers for the api and worker processes."""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
# Driver loggers that emit one record per statement at DEBUG.
_CHATTY_LOGGERS = ("aiosqlite", "asyncpg")


def configure_logging(*, level: str) -> None:
    """Configure process logging with consistent format and runtime level."""

    normalized_level = level.strip().upper() if level.strip() else "INFO"
    resolved_level = getattr(logging, normalized_level, logging.INFO)

    logging.basicConfig(
        level=resolved_level,
        format=_LOG_FORMAT,
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.INFO))
