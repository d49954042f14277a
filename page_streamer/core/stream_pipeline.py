"""
StreamPipeline - Xvfb + Chromium + ffmpeg orchestrator.

Captures a live web page and pushes it to an RTMP ingest endpoint:

1. Start Xvfb on a free display (:99, :100, ...)
2. Launch a headless browser on that display, pointed at the page
3. Wait for the browser to come up (readiness marker, or still alive at timeout)
4. Start ffmpeg x11grab -> H.264/FLV -> RTMP
5. Watch all three processes and report unexpected exits

``start()`` either brings up all three processes or leaves none running.
Each acquisition during bring-up registers its own release on an
``AsyncExitStack``, so a failure at any step (or a cancellation) unwinds
exactly what was acquired, in reverse order.

Linux only. On any other platform ``start()`` fails before spawning anything.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Callable, Dict, List, Optional

from .dependency_gate import check_dependencies
from .dependency_probe import probe_stream_dependencies
from .display_allocator import DisplayAllocator, DisplaySlot
from .errors import AlreadyRunning, NotRunning, PipelineError, ProcessStartupFailure
from .health_monitor import ExitCallback, HealthMonitor
from .launchers import Spawner, launch_browser, launch_display, launch_encoder
from .logging_utils import forget_secret, get_module_logger, register_secret
from .pipeline_types import (
    ROLE_BROWSER,
    ROLE_DISPLAY,
    ROLE_ENCODER,
    DependencyReport,
    HealthEvent,
    HealthSnapshot,
    PipelineConfig,
    PipelineState,
    PipelineTimings,
)
from .process_handle import ProcessHandle
from .shutdown_coordinator import ShutdownCoordinator

Probe = Callable[[], DependencyReport]


class StreamPipeline:
    """One capture/encode pipeline, owned by whoever constructs it.

    Only one pipeline should be active per host: two instances would race on
    display slot allocation.
    """

    def __init__(
        self,
        *,
        probe: Probe = probe_stream_dependencies,
        spawner: Spawner = asyncio.create_subprocess_exec,
        allocator: Optional[DisplayAllocator] = None,
        timings: Optional[PipelineTimings] = None,
        on_process_exit: Optional[ExitCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.logger = get_module_logger("StreamPipeline")
        self.timings = timings or PipelineTimings()

        self._probe = probe
        self._spawner = spawner
        self._allocator = allocator or DisplayAllocator()
        self._coordinator = ShutdownCoordinator(grace=self.timings.stop_grace)
        self._monitor = HealthMonitor(on_exit=on_process_exit)
        self._clock = clock

        self._state = PipelineState.IDLE
        self._handles: Dict[str, ProcessHandle] = {}
        self._slot: Optional[DisplaySlot] = None
        self._started_at: Optional[float] = None
        self._config: Optional[PipelineConfig] = None
        # Held for the whole of start() and stop(); a stop() issued while a
        # start() is in flight waits for it instead of cutting it short.
        self._lifecycle_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Observers

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def config(self) -> Optional[PipelineConfig]:
        return self._config

    @property
    def health_events(self) -> List[HealthEvent]:
        return self._monitor.events

    def is_running(self) -> bool:
        return self._state is PipelineState.RUNNING

    def _alive(self, role: str) -> bool:
        handle = self._handles.get(role)
        return handle is not None and handle.is_alive()

    def get_health(self) -> HealthSnapshot:
        return HealthSnapshot(
            display=self._alive(ROLE_DISPLAY),
            browser=self._alive(ROLE_BROWSER),
            encoder=self._alive(ROLE_ENCODER),
        )

    def get_uptime(self) -> int:
        if self._started_at is None:
            return 0
        return max(0, int(self._clock() - self._started_at))

    def get_display_slot(self) -> str:
        return self._slot.name if self._slot is not None else ""

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self, config: PipelineConfig) -> None:
        if self._state is not PipelineState.IDLE:
            raise AlreadyRunning()

        async with self._lifecycle_lock:
            if self._state is not PipelineState.IDLE:
                raise AlreadyRunning()

            self._state = PipelineState.STARTING
            self._config = config
            self._monitor.clear()
            register_secret(config.ingest_key, config.auth_token)
            self.logger.info("Starting pipeline: %r", config)

            started = False
            try:
                await self._bring_up(config)
                started = True
            except PipelineError as exc:
                self.logger.error("Pipeline start failed: %s", exc)
                raise
            finally:
                if not started:
                    self._reset()

            self._started_at = self._clock()
            self._state = PipelineState.RUNNING
            self._monitor.attach(*self._handles.values())
            self.logger.info(
                "Pipeline running on display %s -> %s",
                self.get_display_slot(), config.ingest_url,
            )

    async def _bring_up(self, config: PipelineConfig) -> None:
        t = self.timings

        async with contextlib.AsyncExitStack() as rollback:
            browser_binary = check_dependencies(self._probe())

            slot = self._allocator.allocate()
            rollback.callback(self._allocator.release, slot)
            self._slot = slot

            display = await launch_display(self._spawner, slot, config)
            self._track(rollback, display)
            if not await self._survives(display, t.display_grace):
                raise ProcessStartupFailure(
                    ROLE_DISPLAY, f"Xvfb exited immediately (code={display.returncode})"
                )
            self.logger.info("Xvfb started on display %s", slot.name)

            browser = await launch_browser(self._spawner, browser_binary, slot, config)
            self._track(rollback, browser)
            await self._wait_for_browser(browser)
            self.logger.info("Browser ready on display %s", slot.name)

            encoder = await launch_encoder(self._spawner, slot, config)
            self._track(rollback, encoder)
            if not await self._survives(encoder, t.encoder_stabilize):
                raise ProcessStartupFailure(
                    ROLE_ENCODER, f"ffmpeg exited immediately (code={encoder.returncode})"
                )
            self.logger.info("ffmpeg streaming to RTMP")

            rollback.pop_all()

    def _track(self, rollback: contextlib.AsyncExitStack, handle: ProcessHandle) -> None:
        self._handles[handle.role] = handle
        rollback.push_async_callback(self._coordinator.stop_process, handle)

    @staticmethod
    async def _survives(handle: ProcessHandle, delay: float) -> bool:
        await asyncio.wait({handle.exited}, timeout=delay)
        return handle.is_alive()

    async def _wait_for_browser(self, browser: ProcessHandle) -> None:
        t = self.timings
        ready_task = asyncio.ensure_future(browser.ready.wait())
        try:
            done, _ = await asyncio.wait(
                {ready_task, browser.exited},
                timeout=t.browser_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            ready_task.cancel()

        if browser.exited in done or not browser.is_alive():
            raise ProcessStartupFailure(
                ROLE_BROWSER, f"browser exited during startup (code={browser.returncode})"
            )

        if ready_task in done:
            # Marker means DevTools is up, not that the page has painted.
            if not await self._survives(browser, t.browser_settle):
                raise ProcessStartupFailure(
                    ROLE_BROWSER, f"browser exited while loading the page (code={browser.returncode})"
                )
            return

        if t.require_browser_ready:
            raise ProcessStartupFailure(
                ROLE_BROWSER, f"no readiness signal within {t.browser_timeout:.1f}s"
            )
        # TODO: capture a frame from the display and check it is not blank
        # before trusting a browser that never printed the marker.
        self.logger.warning(
            "No readiness marker within %.1fs; browser is alive, assuming the page loaded",
            t.browser_timeout,
        )

    async def stop(self) -> int:
        """Tear the pipeline down and return its uptime in whole seconds."""
        async with self._lifecycle_lock:
            if self._state is not PipelineState.RUNNING:
                raise NotRunning()

            uptime = self.get_uptime()
            try:
                await self._monitor.detach()
                await self._coordinator.stop_all(list(self._handles.values()))
            finally:
                self._reset()

            self.logger.info("Pipeline stopped (uptime: %ds)", uptime)
            return uptime

    def _reset(self) -> None:
        if self._config is not None:
            forget_secret(self._config.ingest_key, self._config.auth_token)
        if self._slot is not None:
            self._allocator.release(self._slot)
        self._handles.clear()
        self._slot = None
        self._started_at = None
        self._config = None
        self._state = PipelineState.IDLE


__all__ = ["StreamPipeline", "Probe"]
