"""Path constants for the page streamer."""

from __future__ import annotations

import os
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[1]

# User-specific state; overridable so the streamer can run under a service
# account with a read-only home.
_USER_STATE_ENV = os.environ.get("PAGE_STREAMER_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".page_streamer")

CONFIG_PATH = USER_STATE_DIR / "config.txt"
LOGS_DIR = USER_STATE_DIR / "logs"
MASTER_LOG_FILE = LOGS_DIR / "page_streamer.log"


def ensure_directories() -> None:
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    "PACKAGE_ROOT",
    "USER_STATE_DIR",
    "CONFIG_PATH",
    "LOGS_DIR",
    "MASTER_LOG_FILE",
    "ensure_directories",
]
