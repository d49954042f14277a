"""
Platform detection for the page streamer.

Detection runs once and is cached. The dependency probe only needs the
normalised platform name, but the full record is logged at startup so a
failed run on an unexpected host is easy to diagnose.
"""

import platform
import sys
from dataclasses import dataclass
from typing import Optional

from page_streamer.core.logging_utils import get_module_logger

logger = get_module_logger("PlatformInfo")

SUPPORTED_PLATFORM = "linux"


def normalize_platform(name: str) -> str:
    """Collapse ``sys.platform`` values to ``linux``, ``darwin`` or ``other``."""
    if name.startswith("linux"):
        return "linux"
    if name == "darwin":
        return "darwin"
    return "other"


@dataclass(frozen=True)
class PlatformInfo:
    """Immutable description of the host.

    Attributes:
        platform: Raw ``sys.platform`` value ('linux', 'darwin', 'win32')
        architecture: CPU architecture ('x86_64', 'aarch64', ...)
        os_release: OS release string
        python_version: Python version string
    """

    platform: str
    architecture: str
    os_release: str
    python_version: str

    @property
    def normalized(self) -> str:
        return normalize_platform(self.platform)

    @property
    def is_supported(self) -> bool:
        return self.normalized == SUPPORTED_PLATFORM

    def __str__(self) -> str:
        return f"{self.platform} {self.os_release} ({self.architecture})"


def detect_platform() -> PlatformInfo:
    """Detect current platform information.

    Use get_platform_info() to get the cached instance.
    """
    info = PlatformInfo(
        platform=sys.platform,
        architecture=platform.machine(),
        os_release=platform.release(),
        python_version=platform.python_version(),
    )
    logger.info("Platform detected: %s", info)
    return info


_platform_info: Optional[PlatformInfo] = None


def get_platform_info() -> PlatformInfo:
    global _platform_info
    if _platform_info is None:
        _platform_info = detect_platform()
    return _platform_info


def reset_platform_info() -> None:
    """Reset the cached platform info (for testing only)."""
    global _platform_info
    _platform_info = None


__all__ = [
    "SUPPORTED_PLATFORM",
    "PlatformInfo",
    "normalize_platform",
    "detect_platform",
    "get_platform_info",
    "reset_platform_info",
]
