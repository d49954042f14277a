"""Logging helpers for the page streamer.

Every pipeline component logs through a :class:`StructuredLogger`, which
prefixes messages with ``[Component]`` and masks registered secrets. Stream
keys and auth tokens end up inside command lines, URLs and ffmpeg error
output; registering them once at ``start()`` keeps them out of every log
line without each call site having to remember.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Iterable, Optional, Union
from urllib.parse import quote

LOGGER_NAMESPACE = "page_streamer"
DEFAULT_COMPONENT = "Pipeline"
MASK = "***"

# Reference counted: the CLI and the pipeline register the same values independently.
_secrets: Counter[str] = Counter()
_secrets_lock = threading.Lock()


def register_secret(*values: Optional[str]) -> None:
    """Mask ``values`` (and their URL-encoded forms) in all structured log output."""
    with _secrets_lock:
        for value in values:
            if value:
                _secrets.update({value, quote(value, safe="")})


def forget_secret(*values: Optional[str]) -> None:
    with _secrets_lock:
        for value in values:
            if value:
                for form in {value, quote(value, safe="")}:
                    _secrets[form] -= 1
                    if _secrets[form] <= 0:
                        del _secrets[form]


def redact_text(text: str, extra: Iterable[str] = ()) -> str:
    """Replace every registered secret (plus ``extra``) in ``text`` with ``***``."""
    with _secrets_lock:
        secrets = set(_secrets)
    secrets.update(s for s in extra if s)
    # Longest first so a secret containing another is masked whole.
    for secret in sorted(secrets, key=len, reverse=True):
        text = text.replace(secret, MASK)
    return text


def _scoped_name(name: Optional[str]) -> str:
    if not name:
        return LOGGER_NAMESPACE
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return name
    return f"{LOGGER_NAMESPACE}.{name}"


def _component_for(name: str) -> str:
    if name.startswith(LOGGER_NAMESPACE):
        return name[len(LOGGER_NAMESPACE):].lstrip(".") or DEFAULT_COMPONENT
    return name or DEFAULT_COMPONENT


class StructuredLogger:
    """Wraps a :class:`logging.Logger`; anything not overridden is delegated."""

    __slots__ = ("_logger", "_component")

    def __init__(self, logger: logging.Logger, component: Optional[str] = None) -> None:
        self._logger = logger
        self._component = component or _component_for(logger.name)

    def __getattr__(self, item):
        return getattr(self._logger, item)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"StructuredLogger({self._logger.name!r}, component={self._component!r})"

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def component(self) -> str:
        return self._component

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _compose(self, message: object, args: tuple) -> str:
        text = str(message)
        if args:
            try:
                text = text % args
            except (TypeError, ValueError):
                text = f"{text} | args={' '.join(str(arg) for arg in args)}"
        tag = f"[{self._component}]"
        if not text.startswith(tag):
            text = f"{tag} {text}"
        return redact_text(text)

    def log(self, level: int, message: object, *args, **kwargs) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._compose(message, args), **kwargs)

    def debug(self, message: object, *args, **kwargs) -> None:
        self.log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: object, *args, **kwargs) -> None:
        self.log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: object, *args, **kwargs) -> None:
        self.log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: object, *args, **kwargs) -> None:
        self.log(logging.ERROR, message, *args, **kwargs)

    def exception(self, message: object, *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, message, *args, **kwargs)

    def critical(self, message: object, *args, **kwargs) -> None:
        self.log(logging.CRITICAL, message, *args, **kwargs)

    def getChild(self, suffix: str) -> "StructuredLogger":
        return StructuredLogger(self._logger.getChild(suffix), component=f"{self._component}.{suffix}")


LoggerLike = Union[StructuredLogger, logging.Logger, logging.LoggerAdapter, None]


def ensure_structured_logger(
    logger: LoggerLike,
    *,
    component: Optional[str] = None,
    fallback_name: Optional[str] = None,
) -> StructuredLogger:
    """Return ``logger`` as a StructuredLogger, or a namespaced one when it is None."""
    if isinstance(logger, StructuredLogger):
        return logger
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    if isinstance(logger, logging.Logger):
        return StructuredLogger(logger, component=component)
    return get_module_logger(fallback_name)


def get_module_logger(name: Optional[str] = None) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(_scoped_name(name)))


__all__ = [
    "LoggerLike",
    "StructuredLogger",
    "ensure_structured_logger",
    "get_module_logger",
    "register_secret",
    "forget_secret",
    "redact_text",
]
