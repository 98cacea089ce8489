"""Alert instance data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from vigil.models.rules import ActionKind, ChannelKind, MetricCategory, Severity


class AlertStatus(StrEnum):
    """Lifecycle status of an AlertInstance."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    SUPPRESSED = "suppressed"
    RESOLVED = "resolved"


OPEN_STATUSES: frozenset[AlertStatus] = frozenset({AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED})


@dataclass(frozen=True)
class NotificationRecord:
    """Outcome of one notification send, appended to the alert's log."""

    sent_at: datetime
    channel_id: str
    kind: ChannelKind
    recipient: str
    success: bool
    error_message: str = ""


@dataclass(frozen=True)
class ActionRecord:
    """Outcome of one auto-action execution, appended to the alert's log."""

    executed_at: datetime
    action_id: str
    action_type: ActionKind
    parameters: dict[str, Any]
    success: bool
    error_message: str = ""


@dataclass
class AlertInstance:
    """A concrete, stateful occurrence of a rule's condition being met.

    Never hard-deleted; resolved instances stay in the store for audit.
    ``created_monotonic`` is process-local and is not meaningful once the
    record has been loaded by another process.
    """

    alert_id: str
    rule_id: str
    rule_name: str
    category: MetricCategory
    status: AlertStatus
    severity: Severity
    metric: str
    current_value: float
    threshold: float
    message: str
    created_at: datetime
    created_monotonic: float | None = None
    escalation_level: int = 0
    last_escalated_at: datetime | None = None
    notifications: list[NotificationRecord] = field(default_factory=list)
    actions: list[ActionRecord] = field(default_factory=list)
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    suppressed_by: str | None = None
    suppressed_at: datetime | None = None
    suppressed_until: datetime | None = None
    suppressed_until_monotonic: float | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


@dataclass
class AlertDashboard:
    """Read-only overview: open alerts, the last day of history, and counts."""

    generated_at: datetime
    active_alerts: list[AlertInstance]
    recent_history: list[AlertInstance]
    by_severity: dict[str, int]
    by_category: dict[str, int]
    by_status: dict[str, int]
