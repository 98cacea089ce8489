"""Integration tests for the alert lifecycle: trigger, dedup, cooldown,
escalation, suppression and operator transitions.

All time is driven through a ManualClock; notification and action
outcomes are awaited with ``supervisor.drain()`` before assertions.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from vigil.errors import AlertNotFoundError, InvalidTransitionError, StoreError
from vigil.lifecycle import CONDITION_RESOLVED, MANUALLY_RESOLVED, AlertLifecycleManager, format_message
from vigil.models.alerts import AlertInstance, AlertStatus
from vigil.models.metrics import MetricSnapshot, QualityMetrics
from vigil.models.rules import ActionKind, ActionSpec, AlertRule, ChannelKind, MetricCategory, Operator, Severity
from vigil.store import InMemoryAlertStore

from .conftest import (
    make_channel,
    make_rule,
    make_step,
    make_throttle,
    perf_snapshot,
)

pytestmark = pytest.mark.integration


class _FlakyStore(InMemoryAlertStore):
    """Fails instance lookups for one rule id only."""

    def __init__(self, broken_rule_id: str) -> None:
        super().__init__()
        self._broken = broken_rule_id

    async def find_instances(self, rule_id=None, statuses=None, created_after=None, limit=None):
        if rule_id == self._broken:
            raise StoreError("replica unavailable")
        return await super().find_instances(rule_id, statuses, created_after, limit)


# ---------------------------------------------------------------------------
# Trigger, dedup, cooldown, auto-resolve
# ---------------------------------------------------------------------------


class TestTriggerAndResolve:
    async def test_breach_creates_one_active_instance(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule())

        triggered = await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))

        assert len(triggered) == 1
        alert = triggered[0]
        assert alert.status == AlertStatus.ACTIVE
        assert alert.severity == Severity.HIGH
        assert alert.current_value == pytest.approx(0.90)
        assert alert.threshold == pytest.approx(0.95)
        assert alert.alert_id == f"low_success_rate_{int(clock.now().timestamp() * 1000)}"
        assert "success_rate is 0.90" in alert.message

    async def test_open_instance_is_not_duplicated_then_resolves(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(cooldown_minutes=10))
        first = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]

        clock.advance(timedelta(minutes=1))
        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.80)) == []
        unchanged = await lifecycle.get_alert(first.alert_id)
        assert unchanged.status == AlertStatus.ACTIVE
        assert unchanged.current_value == pytest.approx(0.90)

        clock.advance(timedelta(minutes=10))
        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.96)) == []
        resolved = await lifecycle.get_alert(first.alert_id)
        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolution == CONDITION_RESOLVED
        assert resolved.resolved_by == "system"
        assert resolved.resolved_at == clock.now()

    async def test_cooldown_blocks_retrigger_after_resolution(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(cooldown_minutes=10))
        await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))

        clock.advance(timedelta(minutes=1))
        await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.99))
        clock.advance(timedelta(minutes=1))
        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)) == []

        clock.advance(timedelta(minutes=10))
        again = await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))
        assert len(again) == 1
        assert len(await lifecycle.list_alerts(rule_id="low_success_rate")) == 2

    async def test_zero_cooldown_retriggers_immediately(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(cooldown_minutes=0))
        await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))
        clock.advance(timedelta(seconds=1))
        await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.99))
        clock.advance(timedelta(seconds=1))

        assert len(await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))) == 1

    async def test_missing_section_is_no_signal(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(cooldown_minutes=0))
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]

        clock.advance(timedelta(minutes=5))
        empty = MetricSnapshot(captured_at=clock.now(), quality=QualityMetrics(average_quality_score=9.0))
        assert await lifecycle.check_alerts(empty) == []
        assert (await lifecycle.get_alert(alert.alert_id)).status == AlertStatus.ACTIVE

    async def test_disabled_rule_is_ignored(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(enabled=False))
        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.10)) == []

    async def test_equals_operator_uses_tolerance(self, lifecycle, store, clock) -> None:
        await store.put_rule(
            make_rule(rule_id="error_rate_flat", metric="error_rate", operator=Operator.EQUALS, threshold=0.0)
        )
        assert len(await lifecycle.check_alerts(perf_snapshot(clock, error_rate=0.0005))) == 1

    async def test_extra_metric_is_extracted(self, lifecycle, store, clock) -> None:
        await store.put_rule(
            make_rule(
                rule_id="low_quality",
                metric="average_quality_score",
                category=MetricCategory.QUALITY,
                threshold=7.0,
            )
        )
        snapshot = MetricSnapshot(captured_at=clock.now(), quality=QualityMetrics(average_quality_score=6.5))
        assert len(await lifecycle.check_alerts(snapshot)) == 1


# ---------------------------------------------------------------------------
# Notifications and actions fan-out
# ---------------------------------------------------------------------------


class TestFanOut:
    async def test_notifications_respect_channel_severities(
        self, lifecycle, store, clock, slack, email, supervisor
    ) -> None:
        channels = (
            make_channel(ChannelKind.SLACK, severities=frozenset({Severity.HIGH, Severity.CRITICAL})),
            make_channel(ChannelKind.EMAIL, severities=frozenset({Severity.CRITICAL})),
        )
        await store.put_rule(make_rule(channels=channels))

        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await supervisor.drain()

        assert len(slack.sent) == 1
        assert email.sent == []
        notice, spec = slack.sent[0]
        assert notice.notice_id == alert.alert_id
        assert notice.source == "alert"
        assert spec.channel_id == "slack_ops"

        stored = await lifecycle.get_alert(alert.alert_id)
        assert len(stored.notifications) == 1
        record = stored.notifications[0]
        assert record.success is True
        assert record.kind == ChannelKind.SLACK
        assert record.recipient == "#ops"

    async def test_missing_transport_is_recorded_as_failure(self, lifecycle, store, clock, supervisor) -> None:
        await store.put_rule(make_rule(channels=(make_channel(ChannelKind.SMS),)))

        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await supervisor.drain()

        record = (await lifecycle.get_alert(alert.alert_id)).notifications[0]
        assert record.success is False
        assert record.error_message == "no transport configured for sms"

    async def test_failing_channel_does_not_block_others(
        self, lifecycle, store, clock, slack, email, supervisor
    ) -> None:
        slack.succeed = False
        await store.put_rule(
            make_rule(channels=(make_channel(ChannelKind.SLACK), make_channel(ChannelKind.EMAIL)))
        )

        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await supervisor.drain()

        outcomes = {r.kind: r.success for r in (await lifecycle.get_alert(alert.alert_id)).notifications}
        assert outcomes == {ChannelKind.SLACK: False, ChannelKind.EMAIL: True}
        assert len(email.sent) == 1

    async def test_auto_action_runs_and_is_recorded(self, lifecycle, store, clock, control_plane, supervisor) -> None:
        await store.put_rule(make_rule(actions=(make_throttle(0.5),)))

        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await supervisor.drain()

        command, payload = control_plane.commands[0]
        assert command == "throttle_requests"
        assert payload["rate"] == 0.5
        assert payload["context"]["alert_id"] == alert.alert_id

        record = (await lifecycle.get_alert(alert.alert_id)).actions[0]
        assert record.success is True
        assert record.action_type == ActionKind.THROTTLE_REQUESTS

    async def test_invalid_action_parameters_are_recorded(
        self, lifecycle, store, clock, control_plane, supervisor
    ) -> None:
        bad = ActionSpec(action_id="scale_out", kind=ActionKind.SCALE_INSTANCES, parameters={"instances": 5})
        await store.put_rule(make_rule(actions=(bad,)))

        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await supervisor.drain()

        record = (await lifecycle.get_alert(alert.alert_id)).actions[0]
        assert record.success is False
        assert "entity" in record.error_message
        assert control_plane.commands == []

    async def test_control_plane_rejection_is_recorded(
        self, lifecycle, store, clock, control_plane, supervisor
    ) -> None:
        control_plane.fail = True
        await store.put_rule(make_rule(actions=(make_throttle(0.5),)))

        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await supervisor.drain()

        record = (await lifecycle.get_alert(alert.alert_id)).actions[0]
        assert record.success is False
        assert record.error_message == "throttle_requests rejected"


# ---------------------------------------------------------------------------
# Escalation
# ---------------------------------------------------------------------------


class TestEscalation:
    async def test_step_applies_once_overdue(self, lifecycle, store, clock, email, supervisor) -> None:
        step = make_step(20, Severity.CRITICAL, channels=(make_channel(ChannelKind.EMAIL, severities=frozenset()),))
        await store.put_rule(make_rule(escalation_steps=(step,)))
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]

        clock.advance(timedelta(minutes=10))
        assert await lifecycle.process_escalations() == []

        clock.advance(timedelta(minutes=15))
        escalated = await lifecycle.process_escalations()
        await supervisor.drain()

        assert [e.alert_id for e in escalated] == [alert.alert_id]
        stored = await lifecycle.get_alert(alert.alert_id)
        assert stored.escalation_level == 1
        assert stored.severity == Severity.CRITICAL
        assert stored.last_escalated_at == clock.now()
        # step channels are used regardless of their severity filter
        assert len(email.sent) == 1
        assert email.sent[0][0].severity == Severity.CRITICAL

    async def test_level_only_increases_one_step_per_pass(self, lifecycle, store, clock) -> None:
        steps = (make_step(20, Severity.HIGH), make_step(30, Severity.CRITICAL))
        await store.put_rule(make_rule(severity=Severity.MEDIUM, escalation_steps=steps))
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]

        clock.advance(timedelta(minutes=60))
        levels = []
        for _ in range(4):
            await lifecycle.process_escalations()
            levels.append((await lifecycle.get_alert(alert.alert_id)).escalation_level)

        assert levels == [1, 2, 2, 2]
        assert (await lifecycle.get_alert(alert.alert_id)).severity == Severity.CRITICAL

    async def test_acknowledged_alert_still_escalates(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(escalation_steps=(make_step(20, Severity.CRITICAL),)))
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await lifecycle.acknowledge_alert(alert.alert_id, "oncall")

        clock.advance(timedelta(minutes=25))
        await lifecycle.process_escalations()

        stored = await lifecycle.get_alert(alert.alert_id)
        assert stored.status == AlertStatus.ACKNOWLEDGED
        assert stored.escalation_level == 1

    async def test_suppressed_alert_does_not_escalate(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(escalation_steps=(make_step(20, Severity.CRITICAL),)))
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await lifecycle.suppress_alert(alert.alert_id, "oncall", timedelta(hours=2))

        clock.advance(timedelta(minutes=25))
        assert await lifecycle.process_escalations() == []

    async def test_escalation_action_is_executed(self, lifecycle, store, clock, control_plane, supervisor) -> None:
        restart = ActionSpec(action_id="restart", kind=ActionKind.RESTART_SERVICE, parameters={"service": "gen-api"})
        await store.put_rule(make_rule(escalation_steps=(make_step(20, Severity.CRITICAL, actions=(restart,)),)))
        await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))

        clock.advance(timedelta(minutes=21))
        await lifecycle.process_escalations()
        await supervisor.drain()

        assert [c for c, _ in control_plane.commands] == ["restart_service"]


# ---------------------------------------------------------------------------
# Suppression
# ---------------------------------------------------------------------------


class TestSuppression:
    async def _suppressed(self, lifecycle: AlertLifecycleManager, store, clock, minutes: int = 30):
        await store.put_rule(make_rule(cooldown_minutes=0))
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        return await lifecycle.suppress_alert(alert.alert_id, "oncall", timedelta(minutes=minutes))

    async def test_suppress_records_window(self, lifecycle, store, clock) -> None:
        alert = await self._suppressed(lifecycle, store, clock)
        assert alert.status == AlertStatus.SUPPRESSED
        assert alert.suppressed_by == "oncall"
        assert alert.suppressed_until == clock.now() + timedelta(minutes=30)

    async def test_suppressed_instance_blocks_duplicates(self, lifecycle, store, clock) -> None:
        await self._suppressed(lifecycle, store, clock)
        clock.advance(timedelta(minutes=5))
        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.50)) == []

    async def test_not_reevaluated_before_expiry(self, lifecycle, store, clock) -> None:
        alert = await self._suppressed(lifecycle, store, clock)
        clock.advance(timedelta(minutes=29))
        assert await lifecycle.process_suppressions(perf_snapshot(clock, success_rate=0.99)) == []
        assert (await lifecycle.get_alert(alert.alert_id)).status == AlertStatus.SUPPRESSED

    async def test_reactivated_when_condition_still_true(self, lifecycle, store, clock) -> None:
        alert = await self._suppressed(lifecycle, store, clock)
        clock.advance(timedelta(minutes=31))

        changed = await lifecycle.process_suppressions(perf_snapshot(clock, success_rate=0.85))

        assert [c.status for c in changed] == [AlertStatus.ACTIVE]
        stored = await lifecycle.get_alert(alert.alert_id)
        assert stored.status == AlertStatus.ACTIVE
        assert stored.current_value == pytest.approx(0.85)
        assert stored.suppressed_until is None

    async def test_resolved_when_condition_cleared(self, lifecycle, store, clock) -> None:
        alert = await self._suppressed(lifecycle, store, clock)
        clock.advance(timedelta(minutes=31))

        await lifecycle.process_suppressions(perf_snapshot(clock, success_rate=0.99))

        stored = await lifecycle.get_alert(alert.alert_id)
        assert stored.status == AlertStatus.RESOLVED
        assert stored.resolution == CONDITION_RESOLVED

    async def test_stays_suppressed_without_a_value(self, lifecycle, store, clock) -> None:
        alert = await self._suppressed(lifecycle, store, clock)
        clock.advance(timedelta(minutes=31))

        await lifecycle.process_suppressions(MetricSnapshot(captured_at=clock.now()))

        assert (await lifecycle.get_alert(alert.alert_id)).status == AlertStatus.SUPPRESSED


# ---------------------------------------------------------------------------
# Operator transitions and reads
# ---------------------------------------------------------------------------


class TestOperatorTransitions:
    async def _active(self, lifecycle, store, clock):
        await store.put_rule(make_rule())
        return (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]

    async def test_acknowledge_then_resolve(self, lifecycle, store, clock) -> None:
        alert = await self._active(lifecycle, store, clock)

        acked = await lifecycle.acknowledge_alert(alert.alert_id, "alice")
        assert acked.status == AlertStatus.ACKNOWLEDGED
        assert acked.acknowledged_by == "alice"

        resolved = await lifecycle.resolve_alert(alert.alert_id, "alice")
        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolution == MANUALLY_RESOLVED

    async def test_resolve_with_custom_resolution(self, lifecycle, store, clock) -> None:
        alert = await self._active(lifecycle, store, clock)
        resolved = await lifecycle.resolve_alert(alert.alert_id, "bob", "provider recovered")
        assert resolved.resolution == "provider recovered"

    async def test_acknowledge_twice_is_rejected(self, lifecycle, store, clock) -> None:
        alert = await self._active(lifecycle, store, clock)
        await lifecycle.acknowledge_alert(alert.alert_id, "alice")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.acknowledge_alert(alert.alert_id, "alice")

    async def test_resolved_is_terminal(self, lifecycle, store, clock) -> None:
        alert = await self._active(lifecycle, store, clock)
        await lifecycle.resolve_alert(alert.alert_id, "alice")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.resolve_alert(alert.alert_id, "alice")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.suppress_alert(alert.alert_id, "alice", timedelta(minutes=5))

    async def test_suppress_requires_positive_duration(self, lifecycle, store, clock) -> None:
        alert = await self._active(lifecycle, store, clock)
        with pytest.raises(ValueError):
            await lifecycle.suppress_alert(alert.alert_id, "alice", timedelta(0))

    async def test_suppressed_alert_can_be_resolved(self, lifecycle, store, clock) -> None:
        alert = await self._active(lifecycle, store, clock)
        await lifecycle.suppress_alert(alert.alert_id, "alice", timedelta(minutes=5))
        resolved = await lifecycle.resolve_alert(alert.alert_id, "alice")
        assert resolved.status == AlertStatus.RESOLVED

    async def test_unknown_alert(self, lifecycle) -> None:
        with pytest.raises(AlertNotFoundError):
            await lifecycle.acknowledge_alert("nope", "alice")
        with pytest.raises(AlertNotFoundError):
            await lifecycle.get_alert("nope")

    async def test_dashboard_groups_open_alerts(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule())
        await store.put_rule(
            make_rule(
                rule_id="low_quality",
                metric="average_quality_score",
                category=MetricCategory.QUALITY,
                threshold=7.0,
                severity=Severity.MEDIUM,
            )
        )
        snapshot = MetricSnapshot(
            captured_at=clock.now(),
            performance=perf_snapshot(clock, success_rate=0.90).performance,
            quality=QualityMetrics(average_quality_score=6.0),
        )
        triggered = await lifecycle.check_alerts(snapshot)
        quality = next(a for a in triggered if a.rule_id == "low_quality")
        await lifecycle.resolve_alert(quality.alert_id, "alice")

        board = await lifecycle.dashboard()

        assert [a.rule_id for a in board.active_alerts] == ["low_success_rate"]
        assert board.by_severity == {"high": 1}
        assert board.by_category == {"performance": 1}
        assert board.by_status == {"active": 1, "resolved": 1}
        assert len(board.recent_history) == 2


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------


class TestFailureIsolation:
    async def test_store_failure_for_one_rule_does_not_stop_others(
        self, dispatcher, executor, clock
    ) -> None:
        store = _FlakyStore(broken_rule_id="broken")
        lifecycle = AlertLifecycleManager(store, dispatcher, executor, clock=clock)
        await store.put_rule(make_rule(rule_id="broken"))
        await store.put_rule(make_rule(rule_id="healthy"))

        triggered = await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.50))

        assert [a.rule_id for a in triggered] == ["healthy"]

    async def test_rule_list_failure_yields_no_alerts(self, dispatcher, executor, clock) -> None:
        class _NoRules(InMemoryAlertStore):
            async def list_rules(self, enabled_only: bool = False):
                raise StoreError("down")

        lifecycle = AlertLifecycleManager(_NoRules(), dispatcher, executor, clock=clock)
        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.10)) == []
        assert await lifecycle.process_escalations() == []

    async def test_manually_resolved_alert_is_left_alone(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule())
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]
        await lifecycle.resolve_alert(alert.alert_id, "alice")

        clock.advance(timedelta(minutes=1))
        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.99)) == []
        assert (await lifecycle.get_alert(alert.alert_id)).resolution == MANUALLY_RESOLVED


# ---------------------------------------------------------------------------
# Instances loaded from the store without monotonic stamps
# ---------------------------------------------------------------------------


def _restored(rule: AlertRule, created_at: datetime, status: AlertStatus = AlertStatus.ACTIVE, **fields):
    """An instance as a fresh process sees it after loading it from the store."""
    return AlertInstance(
        alert_id=f"{rule.rule_id}_restored",
        rule_id=rule.rule_id,
        rule_name=rule.name,
        category=rule.category,
        status=status,
        severity=rule.severity,
        metric=rule.metric,
        current_value=0.90,
        threshold=rule.threshold,
        message=format_message(rule, 0.90),
        created_at=created_at,
        **fields,
    )


class TestRestoredInstances:
    async def test_cooldown_uses_created_at(self, lifecycle, store, clock) -> None:
        rule = make_rule(cooldown_minutes=10)
        await store.put_rule(rule)
        await store.save_instance(_restored(rule, clock.now() - timedelta(minutes=5), status=AlertStatus.RESOLVED))

        assert await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)) == []

        clock.step_wall(timedelta(minutes=6))
        triggered = await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))
        assert len(triggered) == 1

    async def test_escalation_uses_created_at(self, lifecycle, store, clock) -> None:
        rule = make_rule(escalation_steps=(make_step(20, Severity.CRITICAL),))
        await store.put_rule(rule)
        await store.save_instance(_restored(rule, clock.now() - timedelta(minutes=10)))

        assert await lifecycle.process_escalations() == []

        clock.step_wall(timedelta(minutes=15))
        escalated = await lifecycle.process_escalations()
        assert [e.escalation_level for e in escalated] == [1]
        assert escalated[0].severity == Severity.CRITICAL

    async def test_naive_created_at_is_treated_as_utc(self, lifecycle, store, clock) -> None:
        rule = make_rule(escalation_steps=(make_step(20, Severity.CRITICAL),))
        await store.put_rule(rule)
        naive = (clock.now() - timedelta(minutes=25)).replace(tzinfo=None)
        await store.save_instance(_restored(rule, naive))

        escalated = await lifecycle.process_escalations()

        assert [e.alert_id for e in escalated] == ["low_success_rate_restored"]

    async def test_in_process_instance_ignores_wall_jumps(self, lifecycle, store, clock) -> None:
        await store.put_rule(make_rule(escalation_steps=(make_step(20, Severity.CRITICAL),)))
        alert = (await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90)))[0]

        clock.step_wall(timedelta(hours=1))
        assert await lifecycle.process_escalations() == []

        clock.advance(timedelta(minutes=25))
        assert [e.alert_id for e in await lifecycle.process_escalations()] == [alert.alert_id]

    async def test_suppression_expiry_uses_suppressed_until(self, lifecycle, store, clock) -> None:
        rule = make_rule()
        await store.put_rule(rule)
        await store.save_instance(
            _restored(
                rule,
                clock.now() - timedelta(minutes=30),
                status=AlertStatus.SUPPRESSED,
                suppressed_until=clock.now() + timedelta(minutes=5),
            )
        )

        assert await lifecycle.process_suppressions(perf_snapshot(clock, success_rate=0.85)) == []

        clock.step_wall(timedelta(minutes=6))
        changed = await lifecycle.process_suppressions(perf_snapshot(clock, success_rate=0.85))
        assert [c.status for c in changed] == [AlertStatus.ACTIVE]


# ---------------------------------------------------------------------------
# Per-alert lock bookkeeping
# ---------------------------------------------------------------------------


class TestAlertLocks:
    async def test_lock_map_stays_empty_across_cycles(self, lifecycle, store, clock, supervisor) -> None:
        await store.put_rule(make_rule(cooldown_minutes=0, channels=(make_channel(),), actions=(make_throttle(),)))

        for _ in range(200):
            assert len(await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.90))) == 1
            await lifecycle.check_alerts(perf_snapshot(clock, success_rate=0.99))
            clock.advance(timedelta(seconds=1))
        await supervisor.drain()

        assert len(await lifecycle.list_alerts(status=AlertStatus.RESOLVED, limit=500)) == 200
        assert lifecycle._locks == {}

    async def test_contended_lock_is_exclusive_and_released(self, lifecycle) -> None:
        inside = 0
        peak = 0

        async def _hold() -> None:
            nonlocal inside, peak
            async with lifecycle._locked("shared"):
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0)
                inside -= 1

        await asyncio.gather(*(_hold() for _ in range(5)))

        assert peak == 1
        assert lifecycle._locks == {}
