"""
Root logger setup for the support desk API.

Domain modules log through ``logging.getLogger(__name__)`` and never touch
handlers; ``create_app()`` calls ``configure_logging(settings.log_level)``
once. Loop protection denials arrive at WARNING, customer company changes
at INFO and dispatcher failures at ERROR.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# request lines and SQL echo drown out the service's own messages
_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")

_configured = False


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName((level or "INFO").upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | int | None = None) -> None:
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    # under uvicorn the root logger may already have a handler
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
