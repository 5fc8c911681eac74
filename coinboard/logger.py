"""Logging setup for the coinboard process."""
from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that log every HTTP request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")


def _resolve_level(name: str) -> tuple[int, bool]:
    level = logging.getLevelName(name.upper())
    if isinstance(level, int):
        return level, True
    return logging.INFO, False


def setup_logging(level: str | None = None) -> None:
    """Attach one stream handler to the root logger and set its level.

    ``level`` wins over ``LOG_LEVEL``. An unknown level name falls back to
    INFO with a warning, so a typo in the environment is visible.
    """
    requested = level or os.environ.get("LOG_LEVEL") or "INFO"
    resolved, known = _resolve_level(requested)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
    root.setLevel(resolved)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not known:
        logging.getLogger(__name__).warning("Unknown log level %r, using INFO", requested)


__all__ = ["setup_logging", "LOG_FORMAT", "DATE_FORMAT"]
