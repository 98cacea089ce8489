"""Supervision of fire-and-forget work.

Notification sends and auto-actions must never block an evaluation pass,
but their outcomes still have to be observed.  The supervisor owns every
such task, logs anything that escapes, and lets the app drain or cancel the
outstanding work on shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

_log = structlog.get_logger(component="supervisor")


class TaskSupervisor:
    """Tracks background tasks spawned on behalf of evaluation passes."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any] | None:
        """Schedule *coro* and return its task.

        After ``stop()`` the coroutine is closed without running and None is
        returned.
        """
        if self._closed:
            coro.close()
            _log.debug("spawn_after_stop_ignored", task=name)
            return None
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _log.error("supervised_task_failed", task=task.get_name(), error=str(exc))

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every outstanding task (including ones they spawn) is done."""

        async def _wait_all() -> None:
            while self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

        if timeout is None:
            await _wait_all()
        else:
            await asyncio.wait_for(_wait_all(), timeout=timeout)

    async def stop(self, grace_seconds: float = 5.0) -> None:
        """Refuse new work, give outstanding tasks a grace period, then cancel."""
        self._closed = True
        try:
            await self.drain(timeout=grace_seconds)
        except TimeoutError:
            _log.warning("supervisor_drain_timed_out", pending=len(self._tasks))
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
