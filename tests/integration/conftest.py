"""Shared fixtures for Vigil integration tests.

Wires the lifecycle manager to an in-memory store, a manual clock and
recording transports so tests can drive whole passes deterministically.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from vigil.actions import ActionExecutor, ControlPlane, default_handlers
from vigil.clock import ManualClock
from vigil.errors import ActionError
from vigil.lifecycle import AlertLifecycleManager
from vigil.models.metrics import (
    BusinessMetrics,
    MetricSnapshot,
    PerformanceMetrics,
    QualityMetrics,
)
from vigil.models.notices import Notice
from vigil.models.rules import (
    ActionKind,
    ActionSpec,
    AlertRule,
    ChannelKind,
    ChannelSpec,
    EscalationStep,
    MetricCategory,
    Operator,
    Severity,
)
from vigil.notifications import NotificationChannel, NotificationDispatcher
from vigil.store import InMemoryAlertStore
from vigil.supervisor import TaskSupervisor

# ---------------------------------------------------------------------------
# Recording collaborators
# ---------------------------------------------------------------------------


class RecordingChannel(NotificationChannel):
    """Channel that remembers every notice instead of sending it."""

    def __init__(self, kind: ChannelKind, succeed: bool = True) -> None:
        self._kind = kind
        self.succeed = succeed
        self.sent: list[tuple[Notice, ChannelSpec]] = []

    @property
    def kind(self) -> ChannelKind:
        return self._kind

    async def send(self, notice: Notice, spec: ChannelSpec) -> bool:
        self.sent.append((notice, spec))
        return self.succeed


class RecordingControlPlane(ControlPlane):
    def __init__(self) -> None:
        self.commands: list[tuple[str, dict[str, Any]]] = []
        self.fail = False

    async def execute(self, command: str, payload: dict[str, Any]) -> None:
        self.commands.append((command, payload))
        if self.fail:
            raise ActionError(f"{command} rejected")


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_channel(
    kind: ChannelKind = ChannelKind.SLACK,
    severities: frozenset[Severity] | None = None,
    channel_id: str = "",
) -> ChannelSpec:
    return ChannelSpec(
        channel_id=channel_id or f"{kind.value}_ops",
        kind=kind,
        configuration={"recipient": "#ops"},
        severities=severities if severities is not None else frozenset(Severity),
    )


def make_rule(
    rule_id: str = "low_success_rate",
    metric: str = "success_rate",
    category: MetricCategory = MetricCategory.PERFORMANCE,
    operator: Operator = Operator.BELOW,
    threshold: float = 0.95,
    severity: Severity = Severity.HIGH,
    cooldown_minutes: float = 10,
    escalation_steps: tuple[EscalationStep, ...] = (),
    channels: tuple[ChannelSpec, ...] = (),
    actions: tuple[ActionSpec, ...] = (),
    enabled: bool = True,
) -> AlertRule:
    return AlertRule(
        rule_id=rule_id,
        name=rule_id.replace("_", " ").title(),
        metric=metric,
        category=category,
        operator=operator,
        threshold=threshold,
        severity=severity,
        cooldown=timedelta(minutes=cooldown_minutes),
        enabled=enabled,
        escalation_steps=escalation_steps,
        notification_channels=channels,
        auto_actions=actions,
    )


def make_step(
    minutes: float,
    severity: Severity,
    channels: tuple[ChannelSpec, ...] = (),
    actions: tuple[ActionSpec, ...] = (),
    step_id: str = "",
) -> EscalationStep:
    return EscalationStep(
        step_id=step_id or f"after_{int(minutes)}m",
        trigger_after=timedelta(minutes=minutes),
        severity=severity,
        notification_channels=channels,
        auto_actions=actions,
    )


def make_throttle(rate: float = 0.5) -> ActionSpec:
    return ActionSpec(action_id="throttle_requests", kind=ActionKind.THROTTLE_REQUESTS, parameters={"rate": rate})


def perf_snapshot(clock: ManualClock, **fields: float) -> MetricSnapshot:
    return MetricSnapshot(captured_at=clock.now(), performance=PerformanceMetrics(**fields))


def full_snapshot(
    clock: ManualClock,
    success_rate: float = 0.99,
    average_generation_time: float = 1000.0,
    quality: float = 8.0,
    satisfaction: float = 4.5,
    conversion: float = 0.10,
) -> MetricSnapshot:
    return MetricSnapshot(
        captured_at=clock.now(),
        performance=PerformanceMetrics(success_rate=success_rate, average_generation_time=average_generation_time),
        quality=QualityMetrics(average_quality_score=quality, user_satisfaction_score=satisfaction),
        business=BusinessMetrics(premium_conversion_rate=conversion),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def supervisor() -> TaskSupervisor:
    return TaskSupervisor()


@pytest.fixture
def slack() -> RecordingChannel:
    return RecordingChannel(ChannelKind.SLACK)


@pytest.fixture
def email() -> RecordingChannel:
    return RecordingChannel(ChannelKind.EMAIL)


@pytest.fixture
def control_plane() -> RecordingControlPlane:
    return RecordingControlPlane()


@pytest.fixture
def dispatcher(
    slack: RecordingChannel,
    email: RecordingChannel,
    supervisor: TaskSupervisor,
    clock: ManualClock,
) -> NotificationDispatcher:
    return NotificationDispatcher(channels=[slack, email], supervisor=supervisor, clock=clock)


@pytest.fixture
def executor(
    supervisor: TaskSupervisor,
    control_plane: RecordingControlPlane,
    clock: ManualClock,
) -> ActionExecutor:
    return ActionExecutor(default_handlers(), supervisor, control_plane=control_plane, clock=clock)


@pytest.fixture
def lifecycle(
    store: InMemoryAlertStore,
    dispatcher: NotificationDispatcher,
    executor: ActionExecutor,
    clock: ManualClock,
) -> AlertLifecycleManager:
    return AlertLifecycleManager(store, dispatcher, executor, clock=clock)
