"""Headless web page to RTMP streaming pipeline."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

from .app.master import main, run as _run

try:
    __version__ = metadata.version("page-streamer")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the streamer CLI and return its exit code."""
    return _run(list(argv) if argv is not None else None)


__all__ = ["__version__", "main", "run"]
