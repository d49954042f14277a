"""Capability probe for the external tools the pipeline drives.

Looks for Xvfb, a Chromium-family browser and ffmpeg on PATH. The result is a
:class:`DependencyReport`; deciding whether to proceed is the dependency
gate's job, not this module's.
"""

from __future__ import annotations

import shutil
from typing import Callable, Iterable, Optional

from .logging_utils import get_module_logger
from .pipeline_types import DependencyReport
from .platform_info import get_platform_info

logger = get_module_logger("DependencyProbe")

XVFB_BINARY = "Xvfb"
FFMPEG_BINARY = "ffmpeg"

# Probe order matters: the first hit is the binary we launch.
BROWSER_CANDIDATES = (
    "chromium",
    "chromium-browser",
    "google-chrome",
    "google-chrome-stable",
)

# Debian/Ubuntu package names for the install hint.
_APT_PACKAGES = {
    "Xvfb": "xvfb",
    "chromium": "chromium",
    "ffmpeg": "ffmpeg",
}

Which = Callable[[str], Optional[str]]


def resolve_browser_binary(
    candidates: Iterable[str] = BROWSER_CANDIDATES,
    which: Which = shutil.which,
) -> Optional[str]:
    """Return the first browser candidate found on PATH, or None."""
    for name in candidates:
        if which(name):
            return name
    return None


def probe_stream_dependencies(which: Which = shutil.which) -> DependencyReport:
    """Check the host for every tool the pipeline needs.

    On macOS Xvfb is not expected, but missing tools are still reported so
    callers can decide how to message it.
    """
    browser = resolve_browser_binary(which=which)
    tools = {
        "Xvfb": which(XVFB_BINARY) is not None,
        "chromium": browser is not None,
        "ffmpeg": which(FFMPEG_BINARY) is not None,
    }
    report = DependencyReport(
        platform=get_platform_info().normalized,
        tools=tools,
        browser_binary=browser,
    )

    if report.all_ready:
        logger.info("Streaming dependencies ready (browser: %s)", browser)
    else:
        logger.info("Streaming dependencies missing: %s", ", ".join(report.missing))
    return report


def install_hint(missing: Iterable[str]) -> str:
    packages = [_APT_PACKAGES.get(name, name.lower()) for name in missing]
    if not packages:
        return ""
    return f"Install with: apt install {' '.join(packages)}"


__all__ = [
    "BROWSER_CANDIDATES",
    "resolve_browser_binary",
    "probe_stream_dependencies",
    "install_hint",
]
