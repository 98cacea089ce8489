"""Prometheus metrics exported by Vigil."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

notifications_total = Counter(
    "vigil_notifications_total",
    "Notification sends by channel kind and outcome.",
    ["channel", "success"],
)

actions_total = Counter(
    "vigil_actions_total",
    "Auto-action executions by action kind and outcome.",
    ["action", "success"],
)

alerts_triggered_total = Counter(
    "vigil_alerts_triggered_total",
    "Alert instances created.",
    ["rule_id", "severity"],
)

alerts_escalated_total = Counter(
    "vigil_alerts_escalated_total",
    "Escalation steps applied.",
    ["rule_id", "severity"],
)

alerts_resolved_total = Counter(
    "vigil_alerts_resolved_total",
    "Alert instances resolved.",
    ["reason"],
)

rule_errors_total = Counter(
    "vigil_rule_errors_total",
    "Rule evaluations abandoned because of an error.",
    ["rule_id"],
)

anomalies_detected_total = Counter(
    "vigil_anomalies_detected_total",
    "Anomaly records produced.",
    ["metric", "severity"],
)

pass_duration_seconds = Histogram(
    "vigil_pass_duration_seconds",
    "Wall-clock duration of evaluation passes.",
    ["pass_name"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0),
)

passes_skipped_total = Counter(
    "vigil_passes_skipped_total",
    "Passes skipped because the previous run was still in flight.",
    ["pass_name"],
)
