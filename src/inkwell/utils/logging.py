"""Logging setup for Inkwell: a rotating log file plus an optional stderr stream."""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["LOG_FORMAT", "get_log_path", "get_logger", "reset_logging", "resolve_level", "setup_logging"]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "inkwell.log"

_DEFAULT_LOG_DIR = Path.home() / ".inkwell" / "logs"
_LOG_DIR_ENV = "INKWELL_LOG_DIR"
_LEVEL_ENV = "INKWELL_LOG_LEVEL"
# Third-party loggers that chatter at DEBUG (loop internals, parser rules, retry attempts).
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "markdown_it", "tenacity")

_installed: list[logging.Handler] = []
_log_path: Path | None = None


def setup_logging(
    level: int | str | None = None,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route the root logger to ``<log_dir>/inkwell.log`` (and stderr when ``console``).

    Repeated calls are no-ops returning the existing log path unless
    ``force`` is set. ``level`` may be a number or a level name; ``None``
    reads ``INKWELL_LOG_LEVEL`` and defaults to INFO.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    resolved = resolve_level(level)
    directory = Path(log_dir or os.environ.get(_LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILE_NAME

    root = logging.getLogger()
    for stale in _installed:
        root.removeHandler(stale)
        stale.close()
    handlers = _build_handlers(log_path, console=console, max_bytes=max_bytes, backup_count=backup_count)
    for handler in handlers:
        handler.setLevel(resolved)
        root.addHandler(handler)
    root.setLevel(resolved)
    logging.captureWarnings(True)

    quiet = max(resolved, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    _installed[:] = handlers
    _log_path = log_path
    return log_path


def _build_handlers(
    log_path: Path,
    *,
    console: bool,
    max_bytes: int,
    backup_count: int,
) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def resolve_level(level: int | str | None) -> int:
    """Turn ``level`` (or ``INKWELL_LOG_LEVEL`` when ``None``) into a numeric level."""

    candidate = level if level is not None else os.environ.get(_LEVEL_ENV)
    if candidate is None:
        return logging.INFO
    if isinstance(candidate, int):
        return candidate
    text = candidate.strip().upper()
    if text.isdigit():
        return int(text)
    number = logging.getLevelName(text)
    return number if isinstance(number, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Return the active log file, or ``None`` before :func:`setup_logging`."""

    return _log_path


def reset_logging() -> None:
    """Detach the handlers installed by :func:`setup_logging` and forget its state."""

    global _log_path
    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()
    _log_path = None
