"""Root logging setup for the streamer process.

The streamer usually runs unattended under a service manager, so two things
differ from a plain ``basicConfig``: console lines drop their timestamp when
journald is already adding one, and every handler masks registered secrets,
including records from loggers outside the ``page_streamer`` namespace
(asyncio task tracebacks can carry a full ffmpeg command line).
"""

from __future__ import annotations

import contextlib
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional, Union

from .logging_utils import redact_text

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
JOURNAL_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_MAX_BYTES = 1024 * 1024
_DEFAULT_BACKUP_COUNT = 3

# asyncio logs every slow callback at DEBUG, which drowns the stream logs.
DEFAULT_SUPPRESSED = ("asyncio",)

_configured = False


class RedactingFilter(logging.Filter):
    """Bakes the message and masks secrets before any formatter sees it."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = redact_text(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level '{level}'")
        return value
    return int(level)


def running_under_journald() -> bool:
    return bool(os.environ.get("JOURNAL_STREAM"))


def _prepare(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=LOG_DATEFMT))
    handler.addFilter(RedactingFilter())
    return handler


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = _DEFAULT_MAX_BYTES,
    backup_count: int = _DEFAULT_BACKUP_COUNT,
    suppressed_loggers: Iterable[str] = DEFAULT_SUPPRESSED,
) -> None:
    """Install console and rotating-file handlers on the root logger.

    Args:
        level: Desired logging level (int or name such as "info").
        force: Rebuild handlers even if logging was already configured.
        console: Whether to emit logs to stdout.
        log_file: Optional path for a rotating file handler.
        max_bytes: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
        suppressed_loggers: Logger names raised to WARNING.
    """

    global _configured
    numeric_level = coerce_level(level)
    root = logging.getLogger()

    if _configured and not force:
        root.setLevel(numeric_level)
        return

    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()

    if console:
        fmt = JOURNAL_FORMAT if running_under_journald() else LOG_FORMAT
        root.addHandler(_prepare(logging.StreamHandler(sys.stdout), numeric_level, fmt))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        root.addHandler(_prepare(file_handler, numeric_level, LOG_FORMAT))

    if not root.handlers:
        # Neither console nor file requested; keep stderr so errors still surface.
        root.addHandler(_prepare(logging.StreamHandler(), numeric_level, LOG_FORMAT))

    root.setLevel(numeric_level)

    for name in suppressed_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


__all__ = [
    "configure_logging",
    "coerce_level",
    "running_under_journald",
    "RedactingFilter",
    "LOG_FORMAT",
    "JOURNAL_FORMAT",
    "LOG_DATEFMT",
]
