"""Value types shared by the pipeline components."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

DEFAULT_RESOLUTION = "1280x720"
DEFAULT_BITRATE = "2500k"
DEFAULT_FRAMERATE = 30

ROLE_DISPLAY = "display"
ROLE_BROWSER = "browser"
ROLE_ENCODER = "encoder"

# Launch order. Shutdown walks this in reverse.
ROLES = (ROLE_DISPLAY, ROLE_BROWSER, ROLE_ENCODER)

_RESOLUTION_RE = re.compile(r"^(\d+)x(\d+)$")
_BITRATE_RE = re.compile(r"^(\d+)k$")


class PipelineState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"


@dataclass(frozen=True)
class PipelineConfig:
    """Everything one ``start()`` needs. Immutable for the run.

    Empty ``resolution``/``bitrate`` and a zero ``framerate`` fall back to the
    defaults so callers can pass through unset settings directly.
    """

    page_url: str
    ingest_url: str
    ingest_key: str
    auth_token: str = ""
    resolution: str = DEFAULT_RESOLUTION
    bitrate: str = DEFAULT_BITRATE
    framerate: int = DEFAULT_FRAMERATE

    def __post_init__(self) -> None:
        if not self.resolution:
            object.__setattr__(self, "resolution", DEFAULT_RESOLUTION)
        if not self.bitrate:
            object.__setattr__(self, "bitrate", DEFAULT_BITRATE)
        if not self.framerate:
            object.__setattr__(self, "framerate", DEFAULT_FRAMERATE)

        if not _RESOLUTION_RE.match(self.resolution):
            raise ValueError(f"Resolution must look like 1280x720, got {self.resolution!r}")
        if not _BITRATE_RE.match(self.bitrate):
            raise ValueError(f"Bitrate must look like 2500k, got {self.bitrate!r}")
        if int(self.framerate) <= 0:
            raise ValueError(f"Framerate must be positive, got {self.framerate!r}")
        object.__setattr__(self, "framerate", int(self.framerate))

    @property
    def width(self) -> int:
        return int(self.resolution.split("x")[0])

    @property
    def height(self) -> int:
        return int(self.resolution.split("x")[1])

    @property
    def window_size(self) -> str:
        return self.resolution.replace("x", ",")

    @property
    def bitrate_kbps(self) -> int:
        return int(self.bitrate[:-1])

    @property
    def bufsize(self) -> str:
        return f"{self.bitrate_kbps * 2}k"

    @property
    def keyframe_interval(self) -> int:
        return self.framerate * 2

    @property
    def ingest_target(self) -> str:
        return f"{self.ingest_url}/{self.ingest_key}"

    def __repr__(self) -> str:
        # Keep the stream key and token out of logs; the token may ride in the query.
        page = self.page_url.split("?", 1)[0]
        return (
            f"PipelineConfig(page_url={page!r}, ingest_url={self.ingest_url!r}, "
            f"resolution={self.resolution!r}, bitrate={self.bitrate!r}, "
            f"framerate={self.framerate!r})"
        )


@dataclass(frozen=True)
class PipelineTimings:
    """Fixed delays and timeouts used during bring-up and teardown, in seconds.

    Attributes:
        display_grace: Wait after launching Xvfb before checking it survived.
        browser_timeout: Upper bound on waiting for the browser readiness marker.
        browser_settle: Extra wait after the marker so the page can render.
        encoder_stabilize: Wait after launching ffmpeg before checking it survived.
        stop_grace: Time a process gets to exit after SIGTERM before SIGKILL.
        require_browser_ready: Treat a readiness timeout as a failure instead of
            assuming the still-alive browser is ready.
    """

    display_grace: float = 0.5
    browser_timeout: float = 15.0
    browser_settle: float = 2.0
    encoder_stabilize: float = 1.0
    stop_grace: float = 2.0
    require_browser_ready: bool = False


@dataclass(frozen=True)
class HealthSnapshot:
    display: bool = False
    browser: bool = False
    encoder: bool = False

    @property
    def all_alive(self) -> bool:
        return self.display and self.browser and self.encoder

    @property
    def any_alive(self) -> bool:
        return self.display or self.browser or self.encoder

    def as_dict(self) -> Dict[str, bool]:
        return {
            ROLE_DISPLAY: self.display,
            ROLE_BROWSER: self.browser,
            ROLE_ENCODER: self.encoder,
        }


@dataclass(frozen=True)
class HealthEvent:
    """One unexpected process exit observed while the pipeline was running."""

    role: str
    pid: Optional[int]
    returncode: Optional[int]
    timestamp: float


@dataclass(frozen=True)
class DependencyReport:
    """Result of a capability probe.

    ``platform`` is normalised to ``"linux"``, ``"darwin"`` or ``"other"``.
    """

    platform: str
    tools: Dict[str, bool] = field(default_factory=dict)
    browser_binary: Optional[str] = None

    @property
    def missing(self) -> list[str]:
        return [name for name, ready in self.tools.items() if not ready]

    @property
    def all_ready(self) -> bool:
        return not self.missing


__all__ = [
    "DEFAULT_RESOLUTION",
    "DEFAULT_BITRATE",
    "DEFAULT_FRAMERATE",
    "ROLE_DISPLAY",
    "ROLE_BROWSER",
    "ROLE_ENCODER",
    "ROLES",
    "PipelineState",
    "PipelineConfig",
    "PipelineTimings",
    "HealthSnapshot",
    "HealthEvent",
    "DependencyReport",
]
