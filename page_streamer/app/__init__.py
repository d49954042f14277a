"""Application entrypoints for the page streamer."""

from .master import main, parse_args, resolve_settings, run

__all__ = ["main", "parse_args", "resolve_settings", "run"]
