"""Asyncio helpers for background tasks owned by the pipeline."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional

from .logging_utils import LoggerLike, ensure_structured_logger


def add_task_exception_logger(
    task: asyncio.Task[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
) -> asyncio.Task[Any]:
    """Retrieve and log a task's exception once it finishes.

    Observer and stderr-pump tasks are never awaited directly, so without this
    a failure would only show up as "Task exception was never retrieved".
    """
    task_logger = ensure_structured_logger(logger, fallback_name="asyncio")
    label = context or task.get_name()

    def _done(done_task: asyncio.Task[Any]) -> None:
        if done_task.cancelled():
            return
        exc = done_task.exception()
        if exc is not None:
            task_logger.error("Unhandled exception in %s", label, exc_info=exc)

    task.add_done_callback(_done)
    return task


def create_logged_task(
    coro: Awaitable[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
    pending: Optional[set[asyncio.Task[Any]]] = None,
) -> asyncio.Task[Any]:
    """Create a task that won't lose exceptions, optionally tracking it."""
    task = asyncio.get_running_loop().create_task(coro)
    if context:
        task.set_name(context)

    add_task_exception_logger(task, logger=logger, context=context)

    if pending is not None:
        pending.add(task)
        task.add_done_callback(pending.discard)

    return task


async def cancel_tasks(tasks: set[asyncio.Task[Any]]) -> None:
    """Cancel ``tasks`` and wait until every one of them has finished."""
    snapshot = list(tasks)
    if not snapshot:
        return
    for task in snapshot:
        task.cancel()
    await asyncio.gather(*snapshot, return_exceptions=True)


__all__ = ["add_task_exception_logger", "create_logged_task", "cancel_tasks"]
