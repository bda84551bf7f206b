"""Centralized logging helpers.

All modules log through ``logging.getLogger(__name__)``; this module owns
handler/format setup and the small helpers used for structured DEBUG traces.
"""
from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from constants import Constants

_CONFIGURED = False


def _level_from_env(default: int = logging.WARNING) -> int:
    """Read the log level name from the environment, falling back to ``default``."""
    name = os.environ.get(Constants.ENV_LOG_LEVEL, "").strip().upper()
    if not name:
        return default
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else default


def configure_logging(level: Optional[int] = None, log_file: Optional[str] = None) -> None:
    """Install the console handler on the root logger.

    Safe to call repeatedly: the console handler is only added once, while
    the level is always re-applied.

    Args:
        level: Explicit level; when None, ``DEPCOPY_LOG_LEVEL`` or WARNING is used.
        log_file: Optional path of an additional log file.
    """
    global _CONFIGURED  # pylint: disable=global-statement
    root = logging.getLogger()
    if not _CONFIGURED:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        root.addHandler(handler)
        _CONFIGURED = True
    root.setLevel(level if level is not None else _level_from_env())

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(Constants.LOG_FILE_FORMAT))
        root.addHandler(file_handler)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records of ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping for structured log records.

    None values are dropped so formatters can rely on present keys.
    """
    return {k: v for k, v in fields.items() if v is not None}


def progress_level(verbose: bool) -> int:
    """Level of progress lines: INFO when verbose, DEBUG otherwise."""
    return logging.INFO if verbose else logging.DEBUG


@contextmanager
def verbose_loggers(enabled: bool, *names: str) -> Iterator[None]:
    """Let INFO records of the named loggers through for the duration of the block.

    Loggers that already emit INFO are left alone; levels are restored on exit.
    """
    saved = {}
    if enabled:
        for name in names:
            named = logging.getLogger(name)
            if not named.isEnabledFor(logging.INFO):
                saved[name] = named.level
                named.setLevel(logging.INFO)
    try:
        yield
    finally:
        for name, level in saved.items():
            logging.getLogger(name).setLevel(level)


def relative_path(path: str) -> str:
    """Render ``path`` relative to the working directory for log output."""
    if path == ".":
        return path
    try:
        return os.path.relpath(path, os.getcwd())
    except ValueError:
        # Different drive on Windows.
        return path


class Timer:
    """Context manager measuring elapsed wall time in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Milliseconds since entry (or until exit, once exited)."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
