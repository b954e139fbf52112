"""Console logging for the local server."""
from __future__ import annotations

import logging

from examprep.config import LOG_LEVEL

# Per-request lines from the HTTP client drown out session logs
NOISY_LOGGERS = ("httpx", "httpcore")


def resolve_level(name: str | int | None) -> int:
    """Map a level name such as ``"debug"`` to its number; unknown names give INFO."""
    if isinstance(name, int):
        return name
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_console_logging(level: str | int | None = LOG_LEVEL) -> None:
    """
    Call once at server start. Later calls only adjust the level.
    """
    resolved = resolve_level(level)
    root = logging.getLogger()
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    if root.handlers:
        root.setLevel(resolved)
        return

    root.setLevel(resolved)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(handler)
