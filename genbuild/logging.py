"""Logging for genbuild commands.

Diagnostics go to stderr. Generated text that a command prints (the
``maven-install`` block) is the only thing written to stdout, so it can be
redirected straight into a WORKSPACE file.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

_ROOT = "genbuild"
_CONSOLE_FORMAT = "[genbuild:%(area)s] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(area)s: %(message)s"


def get_logger(area: str | None = None) -> logging.Logger:
    """Logger for one pipeline area, e.g. ``get_logger("resolver")``."""
    return logging.getLogger(f"{_ROOT}.{area}" if area else _ROOT)


class _AreaFilter(logging.Filter):
    """Exposes the part of the logger name after ``genbuild.`` as ``%(area)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        _, _, area = record.name.partition(".")
        record.area = area or "main"
        return True


def _level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    return logging.WARNING if quiet else logging.INFO


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Route the ``genbuild`` hierarchy to ``stream`` (stderr) and optionally ``log_file``.

    ``quiet`` keeps only warnings and errors; ``verbose`` wins over it.
    Handlers from an earlier call are replaced.
    """
    level = _level(verbose, quiet)
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    handlers: list[logging.Handler] = [console]
    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        handlers.append(sink)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(_AreaFilter())
        logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "get_logger"]
