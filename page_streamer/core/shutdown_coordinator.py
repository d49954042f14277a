"""
Shutdown Coordinator - ordered, escalating teardown of pipeline processes.

Processes are stopped consumer-before-producer (encoder, browser, display):
killing Xvfb while ffmpeg is still grabbing from it can leave ffmpeg hung.

Per process:
1. SIGTERM
2. Race the stop grace period against the process's exit future
3. On timeout, SIGKILL and wait (bounded) for the exit

Escalation is best effort. Nothing here raises for a stubborn process;
teardown always runs to completion.
"""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Iterable, Optional

from .logging_utils import get_module_logger
from .pipeline_types import ROLES
from .process_handle import ProcessHandle

OUTCOME_EXITED = "exited"
OUTCOME_GRACEFUL = "graceful"
OUTCOME_KILLED = "killed"

# Reverse of launch order.
SHUTDOWN_ORDER = tuple(reversed(ROLES))

_KILL_WAIT = 5.0


def _order_key(handle: ProcessHandle) -> int:
    try:
        return SHUTDOWN_ORDER.index(handle.role)
    except ValueError:
        return -1


class ShutdownCoordinator:

    def __init__(self, grace: float = 2.0, kill_wait: float = _KILL_WAIT):
        self.logger = get_module_logger("ShutdownCoordinator")
        self.grace = grace
        self.kill_wait = kill_wait

    async def stop_process(self, handle: ProcessHandle) -> str:
        """Terminate one process and return how it went down."""
        try:
            if not handle.is_alive():
                self.logger.debug("%s already exited (code=%s)", handle.role, handle.returncode)
                return OUTCOME_EXITED

            self.logger.info("Stopping %s (pid=%s)", handle.role, handle.pid)
            handle.terminate()
            try:
                await handle.wait_exit(self.grace)
                return OUTCOME_GRACEFUL
            except asyncio.TimeoutError:
                pass

            self.logger.warning(
                "%s did not exit within %.1fs, killing", handle.role, self.grace
            )
            handle.kill()
            try:
                await handle.wait_exit(self.kill_wait)
            except asyncio.TimeoutError:
                self.logger.error("%s (pid=%s) survived SIGKILL wait", handle.role, handle.pid)
            return OUTCOME_KILLED
        finally:
            await handle.aclose()

    async def stop_all(self, handles: Iterable[Optional[ProcessHandle]]) -> Dict[str, str]:
        """Stop every handle in shutdown order; ``None`` entries are skipped."""
        started = time.monotonic()
        present = sorted((h for h in handles if h is not None), key=_order_key)

        outcomes: Dict[str, str] = {}
        for handle in present:
            step_start = time.monotonic()
            outcomes[handle.role] = await self.stop_process(handle)
            self.logger.info(
                "⏱️  %s %s in %.3fs",
                handle.role, outcomes[handle.role], time.monotonic() - step_start,
            )

        if present:
            self.logger.info(
                "⏱️  Stopped %d process(es) in %.3fs", len(present), time.monotonic() - started
            )
        return outcomes


__all__ = [
    "ShutdownCoordinator",
    "SHUTDOWN_ORDER",
    "OUTCOME_EXITED",
    "OUTCOME_GRACEFUL",
    "OUTCOME_KILLED",
]
