"""Transport-neutral payload handed to notification channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from vigil.models.alerts import AlertInstance
from vigil.models.analysis import AnomalyRecord
from vigil.models.rules import Severity


@dataclass(frozen=True)
class Notice:
    """Built from an alert instance or an anomaly record."""

    notice_id: str
    source: str  # "alert" | "anomaly"
    title: str
    severity: Severity
    summary: str
    subject: str  # rule id for alerts, entity for anomalies
    metric: str
    value: float
    reference: float  # threshold for alerts, expected value for anomalies
    detected_at: datetime
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_alert(cls, alert: AlertInstance) -> Notice:
        return cls(
            notice_id=alert.alert_id,
            source="alert",
            title=alert.rule_name,
            severity=alert.severity,
            summary=alert.message,
            subject=alert.rule_id,
            metric=alert.metric,
            value=alert.current_value,
            reference=alert.threshold,
            detected_at=alert.created_at,
            details={
                "status": alert.status.value,
                "category": alert.category.value,
                "escalation_level": alert.escalation_level,
            },
        )

    @classmethod
    def from_anomaly(cls, anomaly: AnomalyRecord) -> Notice:
        summary = (
            f"{anomaly.metric} on {anomaly.entity} averaged {anomaly.observed_value:.2f} "
            f"against a baseline of {anomaly.expected_value:.2f} "
            f"({anomaly.deviation:.1f} standard deviations)"
        )
        return cls(
            notice_id=anomaly.anomaly_id,
            source="anomaly",
            title=f"Anomaly: {anomaly.entity} {anomaly.metric}",
            severity=anomaly.severity,
            summary=summary,
            subject=anomaly.entity,
            metric=anomaly.metric,
            value=anomaly.observed_value,
            reference=anomaly.expected_value,
            detected_at=anomaly.detected_at,
            details={
                "deviation": round(anomaly.deviation, 3),
                "recommended_action": anomaly.recommended_action,
            },
        )

    def to_payload(self) -> dict[str, Any]:
        """Plain dict for JSON transports."""
        return {
            "notice_id": self.notice_id,
            "source": self.source,
            "title": self.title,
            "severity": self.severity.value,
            "summary": self.summary,
            "subject": self.subject,
            "metric": self.metric,
            "value": self.value,
            "reference": self.reference,
            "detected_at": self.detected_at.isoformat(),
            "details": dict(self.details),
        }
