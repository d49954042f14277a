"""Exit observers for a running pipeline.

An unexpected exit is logged and recorded, nothing more: the monitor never
stops the surviving processes or restarts the dead one. Callers poll
``StreamPipeline.get_health()`` and decide for themselves.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, List, Optional

from .asyncio_utils import cancel_tasks, create_logged_task
from .logging_utils import get_module_logger
from .pipeline_types import HealthEvent
from .process_handle import ProcessHandle

ExitCallback = Callable[[HealthEvent], None]


class HealthMonitor:

    def __init__(self, on_exit: Optional[ExitCallback] = None):
        self.logger = get_module_logger("HealthMonitor")
        self.on_exit = on_exit
        self._active = False
        self._events: List[HealthEvent] = []
        self._observers: set[asyncio.Task[Any]] = set()

    @property
    def active(self) -> bool:
        return self._active

    @property
    def events(self) -> List[HealthEvent]:
        return list(self._events)

    def attach(self, *handles: ProcessHandle) -> None:
        self._active = True
        for handle in handles:
            create_logged_task(
                self._observe(handle),
                logger=self.logger,
                context=f"{handle.role}-health",
                pending=self._observers,
            )

    async def _observe(self, handle: ProcessHandle) -> None:
        returncode = await asyncio.shield(handle.exited)
        if not self._active:
            return

        event = HealthEvent(
            role=handle.role,
            pid=handle.pid,
            returncode=returncode,
            timestamp=time.monotonic(),
        )
        self._events.append(event)
        self.logger.warning(
            "%s exited unexpectedly (pid=%s, code=%s); pipeline is degraded",
            handle.role, handle.pid, returncode,
        )
        if self.on_exit is not None:
            try:
                self.on_exit(event)
            except Exception:
                self.logger.exception("Health exit callback failed for %s", handle.role)

    async def detach(self) -> None:
        """Stop observing. Exits after this point are intentional and not reported."""
        self._active = False
        await cancel_tasks(self._observers)

    def clear(self) -> None:
        self._events.clear()


__all__ = ["HealthMonitor", "ExitCallback"]
