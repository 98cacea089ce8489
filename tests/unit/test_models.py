"""Unit tests for document parsing on the model types."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from vigil.models.alerts import AlertInstance, AlertStatus
from vigil.models.analysis import AnomalyRecord
from vigil.models.metrics import MetricSnapshot, sample_from_dict
from vigil.models.notices import Notice
from vigil.models.rules import MetricCategory, Severity

_T0 = datetime(2026, 1, 1, tzinfo=UTC)


class TestMetricSnapshot:
    def test_snake_case_and_extras(self) -> None:
        snapshot = MetricSnapshot.from_dict(
            {"performance": {"success_rate": 0.98, "queue_depth": 4, "label": "x"}}, captured_at=_T0
        )
        assert snapshot.captured_at == _T0
        assert snapshot.performance.success_rate == 0.98
        assert snapshot.performance.extra == {"queue_depth": 4.0}
        assert snapshot.quality is None

    def test_non_object_section_is_absent(self) -> None:
        assert MetricSnapshot.from_dict({"business": [1, 2]}, captured_at=_T0).business is None


class TestSampleFromDict:
    def test_aliases_and_epoch_millis(self) -> None:
        sample = sample_from_dict({"functionName": "generate", "avgExecutionTime": 900, "timestamp": 1767225600000})
        assert sample.execution_time == 900.0
        assert sample.timestamp == _T0
        assert sample.memory_usage == 0.0

    def test_naive_iso_timestamp_is_utc(self) -> None:
        sample = sample_from_dict({"entity": "generate", "timestamp": "2026-01-01T00:00:00"})
        assert sample.timestamp == _T0

    def test_missing_name(self) -> None:
        with pytest.raises(ValueError):
            sample_from_dict({"executionTime": 1})

    def test_non_numeric_value(self) -> None:
        with pytest.raises(ValueError):
            sample_from_dict({"functionName": "generate", "cpuUsage": "high"})


class TestNotice:
    def test_from_alert(self) -> None:
        alert = AlertInstance(
            alert_id="a1",
            rule_id="low_success_rate",
            rule_name="Low Generation Success Rate",
            category=MetricCategory.PERFORMANCE,
            status=AlertStatus.ACTIVE,
            severity=Severity.HIGH,
            metric="success_rate",
            current_value=0.9,
            threshold=0.95,
            message="Low Generation Success Rate: success_rate is 0.90, below threshold of 0.95",
            created_at=_T0,
        )
        notice = Notice.from_alert(alert)
        assert notice.source == "alert"
        assert notice.reference == 0.95
        assert notice.to_payload()["severity"] == "high"

    def test_from_anomaly(self) -> None:
        anomaly = AnomalyRecord(
            entity="generate",
            metric="execution_time",
            observed_value=21.0,
            expected_value=11.0,
            deviation=10.0,
            severity=Severity.CRITICAL,
            detected_at=_T0,
            sample_count=30,
            recommended_action="scale_up_instances",
        )
        notice = Notice.from_anomaly(anomaly)
        assert notice.subject == "generate"
        assert "10.0 standard deviations" in notice.summary
        assert notice.details["recommended_action"] == "scale_up_instances"
