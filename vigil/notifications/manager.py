"""Notification dispatcher and deduplication for Vigil.

NotificationChannel    -- ABC every channel kind must implement.
NotificationDispatcher -- Hands each send to the TaskSupervisor so the
                          evaluation pass never waits on I/O, and reports
                          every outcome as a NotificationRecord.
NoticeDeduplicator     -- Cooldown per dedup key for notices that have no
                          alert lifecycle of their own (anomalies).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from datetime import timedelta

import structlog

from vigil.clock import Clock
from vigil.models.alerts import NotificationRecord
from vigil.models.notices import Notice
from vigil.models.rules import ChannelKind, ChannelSpec
from vigil.observability.metrics import notifications_total
from vigil.supervisor import TaskSupervisor

_log = structlog.get_logger(component="notifications.manager")

_DEDUP_COOLDOWN = timedelta(minutes=15)

OutcomeCallback = Callable[[NotificationRecord], Awaitable[None]]


class NotificationChannel(ABC):
    """Abstract base class for all notification channels.

    Every concrete channel must implement ``send``, which should not
    raise: return ``False`` instead.
    """

    @property
    @abstractmethod
    def kind(self) -> ChannelKind:
        """Channel kind this transport serves."""

    @abstractmethod
    async def send(self, notice: Notice, spec: ChannelSpec) -> bool:
        """Deliver *notice* via this channel.

        Returns:
            True  -- message accepted by the remote endpoint.
            False -- delivery failed (already logged inside implementation).
        """


class NoticeDeduplicator:
    """Suppresses repeated notices for the same key within a cooldown window.

    State is held in-process; restarting Vigil resets all cooldowns.
    """

    def __init__(self, clock: Clock, cooldown: timedelta = _DEDUP_COOLDOWN) -> None:
        self._clock = clock
        self._cooldown = cooldown.total_seconds()
        self._last_sent: dict[str, float] = {}

    def should_send(self, key: str) -> bool:
        now = self._clock.monotonic()
        last = self._last_sent.get(key)
        if last is not None and (now - last) < self._cooldown:
            _log.debug(
                "notice_suppressed_by_deduplicator",
                key=key,
                seconds_remaining=int(self._cooldown - (now - last)),
            )
            return False
        self._last_sent[key] = now
        return True

    def reset(self, key: str) -> None:
        self._last_sent.pop(key, None)


class NotificationDispatcher:
    """Routes notices to the transport registered for each channel kind.

    * Never raises: transport exceptions become failed NotificationRecords.
    * Never blocks the caller: ``submit`` schedules delivery on the
      supervisor and returns immediately.
    * Does not retry; the outcome is reported once through ``on_outcome``.
    """

    def __init__(
        self,
        channels: Iterable[NotificationChannel],
        supervisor: TaskSupervisor,
        clock: Clock | None = None,
        deduplicator: NoticeDeduplicator | None = None,
    ) -> None:
        self._clock = clock or Clock()
        self._channels: dict[ChannelKind, NotificationChannel] = {c.kind: c for c in channels}
        self._supervisor = supervisor
        self._deduplicator = deduplicator or NoticeDeduplicator(self._clock)

    @property
    def kinds(self) -> frozenset[ChannelKind]:
        return frozenset(self._channels)

    def submit(
        self,
        notice: Notice,
        spec: ChannelSpec,
        on_outcome: OutcomeCallback | None = None,
        dedup_key: str | None = None,
    ) -> bool:
        """Schedule delivery of *notice* on *spec*.

        Returns False when the deduplicator dropped the notice.
        """
        if dedup_key is not None and not self._deduplicator.should_send(f"{dedup_key}:{spec.channel_id}"):
            return False
        self._supervisor.spawn(
            self._deliver(notice, spec, on_outcome),
            name=f"notify-{spec.kind.value}-{notice.notice_id}",
        )
        return True

    async def _deliver(self, notice: Notice, spec: ChannelSpec, on_outcome: OutcomeCallback | None) -> None:
        record = await self.send_now(notice, spec)
        if on_outcome is None:
            return
        try:
            await on_outcome(record)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "notification_outcome_not_recorded",
                notice_id=notice.notice_id,
                channel=spec.channel_id,
                error=str(exc),
            )

    async def send_now(self, notice: Notice, spec: ChannelSpec) -> NotificationRecord:
        """Deliver to a single channel and describe the outcome."""
        channel = self._channels.get(spec.kind)
        error = ""
        if channel is None:
            success = False
            error = f"no transport configured for {spec.kind.value}"
        else:
            try:
                success = await channel.send(notice, spec)
                if not success:
                    error = "delivery failed"
            except Exception as exc:  # noqa: BLE001
                _log.error(
                    "notification_channel_unexpected_error",
                    channel=spec.channel_id,
                    notice_id=notice.notice_id,
                    error=str(exc),
                )
                success = False
                error = str(exc)

        notifications_total.labels(channel=spec.kind.value, success="true" if success else "false").inc()

        if success:
            _log.info(
                "notification_sent",
                channel=spec.channel_id,
                kind=spec.kind.value,
                notice_id=notice.notice_id,
                severity=notice.severity.value,
            )
        else:
            _log.warning(
                "notification_failed",
                channel=spec.channel_id,
                kind=spec.kind.value,
                notice_id=notice.notice_id,
                error=error,
            )

        return NotificationRecord(
            sent_at=self._clock.now(),
            channel_id=spec.channel_id,
            kind=spec.kind,
            recipient=spec.recipient,
            success=success,
            error_message=error,
        )
