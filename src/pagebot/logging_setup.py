"""
Root logger wiring driven by the ``logging`` settings section.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

from .core.config import LoggingSettings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_LOG_DIR = Path("logs")
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 5

LOGGER = logging.getLogger(__name__)


def _has_console_handler(root: logging.Logger) -> bool:
    return any(type(handler) is logging.StreamHandler for handler in root.handlers)


def _open_file_handler(log_file: Path, level: int) -> logging.Handler | None:
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
        )
    except OSError as exc:
        LOGGER.warning("File logging to %s disabled: %s", log_file, exc)
        return None
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _attach_log_files(root: logging.Logger, directory: Path) -> None:
    """Add ``bot.log`` and the error-only ``error.log`` unless already attached."""
    attached = {
        getattr(handler, "baseFilename", None)
        for handler in root.handlers
        if isinstance(handler, logging.handlers.RotatingFileHandler)
    }
    for name, level in (("bot.log", logging.NOTSET), ("error.log", logging.ERROR)):
        log_file = directory / name
        if os.path.abspath(log_file) in attached:
            continue
        handler = _open_file_handler(log_file, level)
        if handler is not None:
            root.addHandler(handler)


def configure_logging(
    level: str | None = None,
    *,
    settings: LoggingSettings | None = None,
    log_dir: Path | None = None,
) -> None:
    """
    Configure the root logger.

    An explicit ``level`` wins over ``settings.level``. Console output is on
    unless ``logToConsole`` is false; ``logToFile`` adds ``bot.log`` and an
    error-only ``error.log``. Safe to call repeatedly.
    """
    settings = settings or LoggingSettings()
    level_name = (level or settings.level or "info").upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)

    if settings.log_to_console and not _has_console_handler(root):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console)

    if settings.log_to_file:
        _attach_log_files(root, log_dir or DEFAULT_LOG_DIR)


__all__ = ["DEFAULT_LOG_DIR", "LOG_FORMAT", "configure_logging"]
