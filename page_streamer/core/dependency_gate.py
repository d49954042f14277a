"""Refuse to start unless the host can actually run the pipeline."""

from __future__ import annotations

from .dependency_probe import install_hint
from .errors import DependencyMissing, PlatformUnsupported
from .pipeline_types import DependencyReport
from .platform_info import SUPPORTED_PLATFORM


def check_dependencies(
    report: DependencyReport,
    required_platform: str = SUPPORTED_PLATFORM,
) -> str:
    """Validate a probe result and return the browser binary to launch.

    The platform is checked before tools: x11grab and Xvfb only exist on
    Linux, so a tool list from any other host is irrelevant.
    """
    if report.platform != required_platform:
        raise PlatformUnsupported(report.platform, required_platform)

    missing = report.missing
    if missing:
        raise DependencyMissing(missing, install_hint(missing))

    if not report.browser_binary:
        raise DependencyMissing(["chromium"], "No browser binary resolved after the dependency check passed")

    return report.browser_binary


__all__ = ["check_dependencies"]
