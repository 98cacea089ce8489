"""Pydantic request and response models for the admin API."""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from vigil.models.alerts import AlertDashboard, AlertInstance


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str
    version: str
    passes: list[str]


class NotificationRecordOut(BaseModel):
    sent_at: datetime
    channel_id: str
    kind: str
    recipient: str
    success: bool
    error_message: str = ""


class ActionRecordOut(BaseModel):
    executed_at: datetime
    action_id: str
    action_type: str
    parameters: dict[str, Any]
    success: bool
    error_message: str = ""


class AlertOut(BaseModel):
    alert_id: str
    rule_id: str
    rule_name: str
    category: str
    status: str
    severity: str
    metric: str
    current_value: float
    threshold: float
    message: str
    created_at: datetime
    escalation_level: int
    last_escalated_at: datetime | None = None
    notifications: list[NotificationRecordOut] = Field(default_factory=list)
    actions: list[ActionRecordOut] = Field(default_factory=list)
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    suppressed_by: str | None = None
    suppressed_at: datetime | None = None
    suppressed_until: datetime | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None

    @classmethod
    def from_instance(cls, instance: AlertInstance) -> AlertOut:
        return cls.model_validate(dataclasses.asdict(instance))


class AlertListResponse(BaseModel):
    alerts: list[AlertOut]
    count: int


class DashboardResponse(BaseModel):
    generated_at: datetime
    active_alerts: list[AlertOut]
    recent_history: list[AlertOut]
    by_severity: dict[str, int]
    by_category: dict[str, int]
    by_status: dict[str, int]

    @classmethod
    def from_dashboard(cls, dashboard: AlertDashboard) -> DashboardResponse:
        return cls(
            generated_at=dashboard.generated_at,
            active_alerts=[AlertOut.from_instance(i) for i in dashboard.active_alerts],
            recent_history=[AlertOut.from_instance(i) for i in dashboard.recent_history],
            by_severity=dashboard.by_severity,
            by_category=dashboard.by_category,
            by_status=dashboard.by_status,
        )


class AcknowledgeRequest(BaseModel):
    user: str = Field(min_length=1, max_length=200)


class ResolveRequest(BaseModel):
    user: str = Field(min_length=1, max_length=200)
    resolution: str | None = Field(default=None, max_length=500)


class SuppressRequest(BaseModel):
    user: str = Field(min_length=1, max_length=200)
    # one week at most
    duration_minutes: float = Field(gt=0, le=10080)


class SamplesRequest(BaseModel):
    samples: list[dict[str, Any]] = Field(max_length=5000)


class AcceptedResponse(BaseModel):
    accepted: int


class TriggerResponse(BaseModel):
    pass_name: str
    success: bool
    skipped: bool
    started_at: datetime
    duration_ms: int
    detail: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
