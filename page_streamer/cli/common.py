from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path
from typing import Optional

from page_streamer.core.logging_utils import LoggerLike, ensure_structured_logger


LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def add_logging_arguments(
    parser: argparse.ArgumentParser,
    *,
    default_level: str = "info",
    default_log_file: Optional[Path] = None,
    default_console_output: bool = True,
) -> None:
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=default_level,
        help="Verbosity of the streamer log (ffmpeg progress is never logged)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=default_log_file,
        help="Rotating log file; the directory is created if missing",
    )

    console_group = parser.add_mutually_exclusive_group()
    console_group.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=default_console_output,
        help="Mirror log lines to stdout (default)",
    )
    console_group.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Only write the log file, e.g. when stdout is already captured by a service manager",
    )


def _positive(typ: type, value: str):
    try:
        parsed = typ(value)
    except ValueError:
        parsed = None
    if parsed is None or parsed <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive {typ.__name__}, got {value!r}")
    return parsed


def positive_int(value: str) -> int:
    return _positive(int, value)


def positive_float(value: str) -> float:
    return _positive(float, value)


def resolution_arg(value: str) -> str:
    width, sep, height = value.lower().partition("x")
    if not sep or not width.isdigit() or not height.isdigit():
        raise argparse.ArgumentTypeError("Resolution must look like 1280x720")
    return f"{int(width)}x{int(height)}"


def bitrate_arg(value: str) -> str:
    text = value.lower()
    if not text.endswith("k") or not text[:-1].isdigit():
        raise argparse.ArgumentTypeError("Bitrate must look like 2500k")
    return text


def install_exception_handlers(
    logger: LoggerLike,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> None:
    log = ensure_structured_logger(logger, fallback_name="cli")

    def handle_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        log.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = handle_exception

    if loop is not None:
        def handle_asyncio_exception(loop, context):
            exception = context.get('exception')
            message = context.get('message', 'Unhandled asyncio exception')
            if exception:
                log.error("Asyncio exception: %s", message, exc_info=exception)
            else:
                log.error("Asyncio error: %s, context: %s", message, context)

        loop.set_exception_handler(handle_asyncio_exception)


def install_signal_handlers(shutdown_event: asyncio.Event, loop: asyncio.AbstractEventLoop) -> None:
    """Set ``shutdown_event`` on SIGINT/SIGTERM."""

    def signal_handler():
        if not shutdown_event.is_set():
            shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, signal_handler)


def remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, ValueError):
            loop.remove_signal_handler(sig)


def log_banner(logger: LoggerLike, title: str, **extra_info) -> None:
    log = ensure_structured_logger(logger, fallback_name="cli")
    log.info("=" * 60)
    log.info("%s", title)
    for key, value in extra_info.items():
        log.info("%s: %s", key.replace('_', ' ').title(), value)
    log.info("=" * 60)


__all__ = [
    "LOG_LEVELS",
    "add_logging_arguments",
    "positive_int",
    "positive_float",
    "resolution_arg",
    "bitrate_arg",
    "install_exception_handlers",
    "install_signal_handlers",
    "remove_signal_handlers",
    "log_banner",
]
