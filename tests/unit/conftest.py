"""Unit test fixtures for isolated, fast test execution.

Everything here runs without the external tools: processes come from
MockSpawner, dependency probes are canned reports and display locks live
in a per-test temporary directory.

The root conftest provides:
- project_root
- mock_spawner

This file provides:
- Canned dependency reports (linux_report)
- Short pipeline timings (fast_timings)
- A display allocator isolated from the real /tmp (allocator)
- A valid stream configuration (stream_config)
"""

from __future__ import annotations

from pathlib import Path

import pytest

from page_streamer.core.display_allocator import DisplayAllocator
from page_streamer.core.pipeline_types import DependencyReport, PipelineConfig, PipelineTimings


ALL_TOOLS = {"Xvfb": True, "chromium": True, "ffmpeg": True}


def make_report(platform: str = "linux", browser: str = "chromium", **tools: bool) -> DependencyReport:
    """Build a DependencyReport; tool overrides use keyword args (ffmpeg=False)."""
    merged = dict(ALL_TOOLS)
    merged.update(tools)
    return DependencyReport(platform=platform, tools=merged, browser_binary=browser)


@pytest.fixture
def linux_report() -> DependencyReport:
    return make_report()


@pytest.fixture
def fast_timings() -> PipelineTimings:
    """Timings short enough that a full start/stop takes a few tens of ms."""
    return PipelineTimings(
        display_grace=0.01,
        browser_timeout=0.2,
        browser_settle=0.01,
        encoder_stabilize=0.01,
        stop_grace=0.05,
    )


@pytest.fixture
def allocator(tmp_path: Path) -> DisplayAllocator:
    return DisplayAllocator(lock_dir=tmp_path)


@pytest.fixture
def stream_config() -> PipelineConfig:
    return PipelineConfig(
        page_url="https://game.example/stream-overlay?apiKey=tok&embedded=true",
        ingest_url="rtmp://ingest.example/live",
        ingest_key="key123",
        auth_token="tok",
    )


@pytest.fixture
def report_factory():
    """Return make_report for tests that need a non-default probe result."""
    return make_report
