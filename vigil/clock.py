"""Clock abstraction for timestamps and duration comparisons.

Wall-clock time is used for timestamps that get persisted; durations that
only matter inside this process (cooldown, escalation age, suppression
expiry) are measured on the monotonic clock so that wall-clock jumps do not
make alerts misfire.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta


class Clock:
    """Real clock backed by ``datetime.now`` and ``time.monotonic``."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """Clock that only moves when told to.  Used by tests and replay tools."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 1, 1, tzinfo=UTC)
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, delta: timedelta) -> None:
        self._now += delta
        self._mono += delta.total_seconds()

    def step_wall(self, delta: timedelta) -> None:
        """Move only the wall clock, as an NTP correction would."""
        self._now += delta


def elapsed_since(clock: Clock, wall: datetime, mono: float | None) -> timedelta:
    """Return time elapsed since an event recorded as (wall, mono).

    ``mono`` is only meaningful inside the process that recorded it; records
    loaded from the store without it fall back to wall-clock arithmetic.
    """
    if mono is not None:
        return timedelta(seconds=clock.monotonic() - mono)
    if wall.tzinfo is None:
        wall = wall.replace(tzinfo=UTC)
    return clock.now() - wall
