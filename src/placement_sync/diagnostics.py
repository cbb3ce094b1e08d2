"""Append-only diagnostics log for transfer runs.

Every resolution, skip and failure decision is logged through the standard
``placement_sync`` logger hierarchy. This module optionally attaches a
line-oriented file sink to it. The sink never raises: a full disk or a
vanished directory must not fail a transfer.
"""

from __future__ import annotations

import logging
from pathlib import Path

ROOT_LOGGER_NAME = "placement_sync"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class SafeFileHandler(logging.FileHandler):
    """Append-mode file handler whose write errors are dropped silently."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path, mode="a", encoding="utf-8", delay=True)

    def emit(self, record: logging.LogRecord) -> None:
        # The file is opened lazily here, outside StreamHandler's own guard
        try:
            super().emit(record)
        except OSError:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802
        # Diagnostics are a side channel; losing a line is acceptable.
        return


def configure_transfer_log(
    path: str | Path | None,
    *,
    level: int = logging.DEBUG,
) -> logging.Handler | None:
    """Attach the append-only file sink to the package logger.

    Calling this again with the same path is a no-op. Returns the handler,
    or None when ``path`` is None or the directory cannot be created.
    """
    if path is None:
        return None

    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None

    root = logging.getLogger(ROOT_LOGGER_NAME)
    resolved = str(target.resolve())
    for handler in root.handlers:
        if isinstance(handler, SafeFileHandler) and handler.baseFilename == resolved:
            return handler

    handler = SafeFileHandler(target)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    if root.level == logging.NOTSET or root.level > level:
        root.setLevel(level)
    return handler


def remove_transfer_log(handler: logging.Handler | None) -> None:
    """Detach and close a handler returned by configure_transfer_log."""
    if handler is None:
        return
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.removeHandler(handler)
    handler.close()
