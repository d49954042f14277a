"""Argument construction and spawning for the three pipeline processes.

The ``build_*_args`` functions are pure so the argument contract can be
checked without launching anything. The ``launch_*`` coroutines spawn through
an injectable ``spawner`` with the same call shape as
:func:`asyncio.create_subprocess_exec`.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .display_allocator import DisplaySlot
from .errors import ProcessStartupFailure
from .logging_utils import get_module_logger, redact_text
from .pipeline_types import ROLE_BROWSER, ROLE_DISPLAY, ROLE_ENCODER, PipelineConfig
from .process_handle import ProcessHandle, StderrLevel

Spawner = Callable[..., Awaitable[Any]]

XVFB_BINARY = "Xvfb"
FFMPEG_BINARY = "ffmpeg"
COLOR_DEPTH = 24
BROWSER_READY_MARKER = "DevTools listening"

logger = get_module_logger("Launchers")


def build_display_args(slot: DisplaySlot, config: PipelineConfig) -> List[str]:
    return [
        XVFB_BINARY,
        slot.name,
        "-screen", "0", f"{config.width}x{config.height}x{COLOR_DEPTH}",
    ]


def build_browser_args(binary: str, config: PipelineConfig) -> List[str]:
    # Nobody will ever click in this browser, so autoplay must not wait for a
    # user gesture. The debugging port makes Chromium print the readiness line.
    return [
        binary,
        "--headless=new",
        "--no-sandbox",
        "--disable-gpu",
        "--disable-dev-shm-usage",
        "--disable-software-rasterizer",
        "--remote-debugging-port=0",
        f"--window-size={config.window_size}",
        "--autoplay-policy=no-user-gesture-required",
        config.page_url,
    ]


def build_encoder_args(slot: DisplaySlot, config: PipelineConfig) -> List[str]:
    return [
        FFMPEG_BINARY,
        "-f", "x11grab",
        "-video_size", config.resolution,
        "-framerate", str(config.framerate),
        "-i", slot.name,
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-tune", "zerolatency",
        "-b:v", config.bitrate,
        "-maxrate", config.bitrate,
        "-bufsize", config.bufsize,
        "-pix_fmt", "yuv420p",
        "-g", str(config.keyframe_interval),
        "-f", "flv",
        config.ingest_target,
    ]


def display_env(slot: DisplaySlot, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["DISPLAY"] = slot.name
    return env


def _encoder_stderr_level(line: str) -> Optional[int]:
    # ffmpeg reports progress on stderr continuously; only surface errors.
    if "error" in line.lower():
        return logging.WARNING
    return None


async def _spawn(
    spawner: Spawner,
    role: str,
    argv: List[str],
    *,
    env: Optional[Dict[str, str]] = None,
    ready_marker: Optional[str] = None,
    stderr_level: Optional[StderrLevel] = None,
    secret: str = "",
) -> ProcessHandle:
    logger.debug("Launching %s: %s", role, redact_text(" ".join(argv), (secret,)))
    try:
        # Own session so a terminal Ctrl+C reaches us, not the children;
        # teardown order stays under the coordinator's control.
        process = await spawner(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            start_new_session=True,
        )
    except OSError as exc:
        raise ProcessStartupFailure(role, f"could not execute {argv[0]}: {exc}") from exc

    kwargs = {"ready_marker": ready_marker}
    if stderr_level is not None:
        kwargs["stderr_level"] = stderr_level
    handle = ProcessHandle(role, process, **kwargs)
    logger.info("%s started with PID %s", role, handle.pid)
    return handle


async def launch_display(spawner: Spawner, slot: DisplaySlot, config: PipelineConfig) -> ProcessHandle:
    return await _spawn(spawner, ROLE_DISPLAY, build_display_args(slot, config))


async def launch_browser(
    spawner: Spawner,
    binary: str,
    slot: DisplaySlot,
    config: PipelineConfig,
) -> ProcessHandle:
    return await _spawn(
        spawner,
        ROLE_BROWSER,
        build_browser_args(binary, config),
        env=display_env(slot),
        ready_marker=BROWSER_READY_MARKER,
        secret=config.auth_token,
    )


async def launch_encoder(spawner: Spawner, slot: DisplaySlot, config: PipelineConfig) -> ProcessHandle:
    return await _spawn(
        spawner,
        ROLE_ENCODER,
        build_encoder_args(slot, config),
        env=display_env(slot),
        stderr_level=_encoder_stderr_level,
        secret=config.ingest_key,
    )


__all__ = [
    "Spawner",
    "BROWSER_READY_MARKER",
    "COLOR_DEPTH",
    "build_display_args",
    "build_browser_args",
    "build_encoder_args",
    "display_env",
    "launch_display",
    "launch_browser",
    "launch_encoder",
]
