"""Owned handle around one spawned pipeline process.

Each handle resolves its ``exited`` future exactly once, when the OS process
exits. Startup checks, the health monitor and the shutdown coordinator all
wait on that same future instead of polling.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

from .asyncio_utils import cancel_tasks, create_logged_task
from .logging_utils import get_module_logger

StderrLevel = Callable[[str], Optional[int]]


def _debug_level(line: str) -> Optional[int]:
    return logging.DEBUG


class ProcessHandle:
    """A running process plus its role name (``display``, ``browser``, ``encoder``).

    ``process`` is anything shaped like :class:`asyncio.subprocess.Process`.
    When ``ready_marker`` is given, ``ready`` is set the first time a stderr
    line contains it.
    """

    def __init__(
        self,
        role: str,
        process: Any,
        *,
        ready_marker: Optional[str] = None,
        stderr_level: StderrLevel = _debug_level,
    ):
        self.role = role
        self.process = process
        self.logger = get_module_logger(f"Process.{role}")
        self.ready = asyncio.Event()
        self.exited: asyncio.Future[Optional[int]] = asyncio.get_running_loop().create_future()

        self._ready_marker = ready_marker
        self._stderr_level = stderr_level
        self._tasks: set[asyncio.Task[Any]] = set()

        create_logged_task(
            self._watch_exit(),
            logger=self.logger,
            context=f"{role}-exit-watch",
            pending=self._tasks,
        )
        if getattr(process, "stderr", None) is not None:
            create_logged_task(
                self._pump_stderr(),
                logger=self.logger,
                context=f"{role}-stderr",
                pending=self._tasks,
            )

    def __repr__(self) -> str:
        return f"ProcessHandle(role={self.role!r}, pid={self.pid}, alive={self.is_alive()})"

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.process, "pid", None)

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def is_alive(self) -> bool:
        return self.process.returncode is None and not self.exited.done()

    async def _watch_exit(self) -> None:
        returncode = await self.process.wait()
        if not self.exited.done():
            self.exited.set_result(returncode)

    async def _pump_stderr(self) -> None:
        stream = self.process.stderr
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # Line longer than the reader limit (ffmpeg's \r progress lines).
                continue
            if not raw:
                break

            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue

            if self._ready_marker and not self.ready.is_set() and self._ready_marker in line:
                self.logger.info("Readiness marker seen: %s", line)
                self.ready.set()

            level = self._stderr_level(line)
            if level is not None:
                self.logger.log(level, "%s", line)

    async def wait_exit(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for the process to exit; raises ``asyncio.TimeoutError`` on timeout."""
        return await asyncio.wait_for(asyncio.shield(self.exited), timeout)

    def terminate(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self.process.terminate()

    def kill(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self.process.kill()

    async def aclose(self) -> None:
        """Stop the watcher tasks. The process itself is not touched."""
        await cancel_tasks(self._tasks)
        if not self.exited.done():
            self.exited.cancel()


__all__ = ["ProcessHandle", "StderrLevel"]
