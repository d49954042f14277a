"""Errors raised by the stream pipeline.

Every startup failure is raised only after the pipeline has rolled back, so
catching a :class:`PipelineError` from ``start()`` always means "nothing is
left running".
"""

from __future__ import annotations

from typing import Iterable


class PipelineError(RuntimeError):
    """Base class for all pipeline failures."""


class PlatformUnsupported(PipelineError):
    def __init__(self, platform: str, required: str = "linux") -> None:
        self.platform = platform
        self.required = required
        super().__init__(
            f"Streaming pipeline requires {required} (Xvfb + FFmpeg). "
            f"Current platform: {platform}"
        )


class DependencyMissing(PipelineError):
    def __init__(self, missing: Iterable[str], hint: str = "") -> None:
        self.missing = list(missing)
        message = f"Missing dependencies: {', '.join(self.missing)}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class ResourceExhausted(PipelineError):
    def __init__(self, first: int, last: int) -> None:
        self.first = first
        self.last = last
        super().__init__(f"No free display found (:{first} through :{last})")


class ProcessStartupFailure(PipelineError):
    """A pipeline process failed during bring-up.

    ``phase`` is the role of the process that failed: ``"display"``,
    ``"browser"`` or ``"encoder"``.
    """

    def __init__(self, phase: str, reason: str) -> None:
        self.phase = phase
        self.reason = reason
        super().__init__(f"{phase} failed to start: {reason}")


class AlreadyRunning(PipelineError):
    def __init__(self) -> None:
        super().__init__("Pipeline is already running")


class NotRunning(PipelineError):
    def __init__(self) -> None:
        super().__init__("Pipeline is not running")


__all__ = [
    "PipelineError",
    "PlatformUnsupported",
    "DependencyMissing",
    "ResourceExhausted",
    "ProcessStartupFailure",
    "AlreadyRunning",
    "NotRunning",
]
