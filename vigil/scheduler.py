"""Periodic pass scheduler with skip-if-running semantics.

Each named pass (``alerts``, ``escalations``, ``suppressions``,
``analysis``) has its own lock.  A pass that is still running when its next
turn comes is skipped rather than queued, so at most one run of a pass is
ever in flight.  The administrative trigger path goes through the same
lock and reports a structured TriggerResult instead of raising.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from vigil.clock import Clock
from vigil.observability.metrics import pass_duration_seconds, passes_skipped_total

_log = structlog.get_logger(component="scheduler")

PassFn = Callable[[], Awaitable[dict[str, Any]]]


@dataclass
class TriggerResult:
    pass_name: str
    success: bool
    skipped: bool
    started_at: datetime
    duration_ms: int = 0
    detail: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


@dataclass
class _Pass:
    name: str
    fn: PassFn
    interval: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_result: TriggerResult | None = None


class PassScheduler:
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or Clock()
        self._passes: dict[str, _Pass] = {}
        self._tasks: list[asyncio.Task[None]] = []

    def register(self, name: str, fn: PassFn, interval_seconds: float) -> None:
        if name in self._passes:
            raise ValueError(f"pass {name!r} is already registered")
        if interval_seconds <= 0:
            raise ValueError("pass interval must be positive")
        self._passes[name] = _Pass(name=name, fn=fn, interval=interval_seconds)

    @property
    def names(self) -> list[str]:
        return list(self._passes)

    def has(self, name: str) -> bool:
        return name in self._passes

    def last_result(self, name: str) -> TriggerResult | None:
        p = self._passes.get(name)
        return p.last_result if p is not None else None

    async def trigger(self, name: str) -> TriggerResult:
        """Run *name* now unless it is already running.  Never raises."""
        p = self._passes.get(name)
        if p is None:
            return TriggerResult(
                pass_name=name,
                success=False,
                skipped=False,
                started_at=self._clock.now(),
                error=f"unknown pass: {name}",
            )
        return await self._run(p, manual=True)

    async def _run(self, p: _Pass, manual: bool) -> TriggerResult:
        started_at = self._clock.now()
        if p.lock.locked():
            passes_skipped_total.labels(pass_name=p.name).inc()
            _log.warning("pass_skipped_still_running", pass_name=p.name, manual=manual)
            return TriggerResult(pass_name=p.name, success=False, skipped=True, started_at=started_at)

        async with p.lock:
            start = time.perf_counter()
            try:
                detail = await p.fn()
                result = TriggerResult(
                    pass_name=p.name,
                    success=True,
                    skipped=False,
                    started_at=started_at,
                    detail=detail,
                )
            except Exception as exc:  # noqa: BLE001
                _log.error("pass_failed", pass_name=p.name, error=str(exc))
                result = TriggerResult(
                    pass_name=p.name,
                    success=False,
                    skipped=False,
                    started_at=started_at,
                    error=str(exc) or type(exc).__name__,
                )
            elapsed = time.perf_counter() - start
            pass_duration_seconds.labels(pass_name=p.name).observe(elapsed)
            result.duration_ms = int(elapsed * 1000)
            p.last_result = result

        _log.debug("pass_finished", pass_name=p.name, success=result.success, duration_ms=result.duration_ms)
        return result

    # ------------------------------------------------------------------
    # Cadence
    # ------------------------------------------------------------------

    async def _loop(self, p: _Pass) -> None:
        while True:
            await asyncio.sleep(p.interval)
            await self._run(p, manual=False)

    def start(self) -> None:
        if self._tasks:
            return
        for p in self._passes.values():
            self._tasks.append(asyncio.create_task(self._loop(p), name=f"pass-{p.name}"))
        _log.info("scheduler_started", passes={p.name: p.interval for p in self._passes.values()})

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        _log.info("scheduler_stopped")
