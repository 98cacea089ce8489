"""Alert rule definitions and their enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from typing import Any


class Operator(StrEnum):
    """Comparison applied between a metric value and a rule threshold."""

    ABOVE = "above"
    BELOW = "below"
    EQUALS = "equals"


class Severity(StrEnum):
    """Alert and anomaly severity, ordered low to critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class MetricCategory(StrEnum):
    """Snapshot section a rule's metric lives in."""

    PERFORMANCE = "performance"
    QUALITY = "quality"
    BUSINESS = "business"


class ChannelKind(StrEnum):
    """Notification transport kinds."""

    EMAIL = "email"
    SLACK = "slack"
    SMS = "sms"
    WEBHOOK = "webhook"
    PAGER = "pager"


class ActionKind(StrEnum):
    """Automated remediation kinds."""

    SWITCH_PROVIDER = "switch_provider"
    THROTTLE_REQUESTS = "throttle_requests"
    RESTART_SERVICE = "restart_service"
    SCALE_INSTANCES = "scale_instances"


@dataclass(frozen=True)
class ChannelSpec:
    """Where and for which severities a rule sends notifications."""

    channel_id: str
    kind: ChannelKind
    configuration: dict[str, Any] = field(default_factory=dict)
    severities: frozenset[Severity] = frozenset()

    @property
    def recipient(self) -> str:
        return str(self.configuration.get("recipient", "default"))

    def accepts(self, severity: Severity) -> bool:
        return severity in self.severities


@dataclass(frozen=True)
class ActionSpec:
    """An automated action attached to a rule or an escalation step."""

    action_id: str
    kind: ActionKind
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EscalationStep:
    """Severity bump applied once an alert stays open for ``trigger_after``."""

    step_id: str
    trigger_after: timedelta
    severity: Severity
    notification_channels: tuple[ChannelSpec, ...] = ()
    auto_actions: tuple[ActionSpec, ...] = ()


@dataclass(frozen=True)
class AlertRule:
    """Static configuration describing what to watch and how to respond.

    Immutable by convention: edits replace the stored rule rather than
    mutating it in place.
    """

    rule_id: str
    name: str
    metric: str
    category: MetricCategory
    operator: Operator
    threshold: float
    severity: Severity
    cooldown: timedelta
    enabled: bool = True
    description: str = ""
    escalation_steps: tuple[EscalationStep, ...] = ()
    notification_channels: tuple[ChannelSpec, ...] = ()
    auto_actions: tuple[ActionSpec, ...] = ()
