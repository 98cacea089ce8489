"""Metric snapshot and per-function execution sample structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _pick(data: dict[str, Any], *keys: str) -> float | None:
    for key in keys:
        if key in data and data[key] is not None:
            return float(data[key])
    return None


def _extras(data: dict[str, Any], known: set[str]) -> dict[str, float]:
    extra = data.get("extra") or {}
    out = {str(k): float(v) for k, v in extra.items() if isinstance(v, int | float)}
    for key, value in data.items():
        if key in known or key == "extra":
            continue
        if isinstance(value, int | float) and not isinstance(value, bool):
            out.setdefault(key, float(value))
    return out


@dataclass(frozen=True)
class PerformanceMetrics:
    average_generation_time: float | None = None
    success_rate: float | None = None
    error_rate: float | None = None
    extra: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PerformanceMetrics:
        known = {
            "average_generation_time",
            "averageGenerationTime",
            "success_rate",
            "successRate",
            "error_rate",
            "errorRate",
        }
        return cls(
            average_generation_time=_pick(data, "average_generation_time", "averageGenerationTime"),
            success_rate=_pick(data, "success_rate", "successRate"),
            error_rate=_pick(data, "error_rate", "errorRate"),
            extra=_extras(data, known),
        )


@dataclass(frozen=True)
class QualityMetrics:
    average_quality_score: float | None = None
    user_satisfaction_score: float | None = None
    extra: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QualityMetrics:
        satisfaction = data.get("satisfactionAnalysis") or {}
        known = {
            "average_quality_score",
            "overallQualityScore",
            "user_satisfaction_score",
            "satisfactionAnalysis",
        }
        user_satisfaction = _pick(data, "user_satisfaction_score")
        if user_satisfaction is None:
            user_satisfaction = _pick(satisfaction, "averageRating")
        return cls(
            average_quality_score=_pick(data, "average_quality_score", "overallQualityScore"),
            user_satisfaction_score=user_satisfaction,
            extra=_extras(data, known),
        )


@dataclass(frozen=True)
class BusinessMetrics:
    premium_conversion_rate: float | None = None
    revenue_per_user: float | None = None
    extra: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BusinessMetrics:
        conversion = data.get("conversionRates") or {}
        known = {
            "premium_conversion_rate",
            "conversionRates",
            "revenue_per_user",
            "revenuePerUser",
        }
        premium = _pick(data, "premium_conversion_rate")
        if premium is None:
            premium = _pick(conversion, "userToPremium")
        return cls(
            premium_conversion_rate=premium,
            revenue_per_user=_pick(data, "revenue_per_user", "revenuePerUser"),
            extra=_extras(data, known),
        )


@dataclass(frozen=True)
class MetricSnapshot:
    """Periodic snapshot from the metric source; any section may be absent."""

    captured_at: datetime
    performance: PerformanceMetrics | None = None
    quality: QualityMetrics | None = None
    business: BusinessMetrics | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], captured_at: datetime | None = None) -> MetricSnapshot:
        """Build a snapshot from a JSON document (snake_case or camelCase keys)."""
        ts = captured_at
        raw_ts = data.get("captured_at") or data.get("timestamp")
        if ts is None and isinstance(raw_ts, str):
            ts = datetime.fromisoformat(raw_ts.replace("Z", "+00:00"))
        perf = data.get("performance")
        quality = data.get("quality")
        business = data.get("business")
        return cls(
            captured_at=ts or datetime.now(tz=UTC),
            performance=PerformanceMetrics.from_dict(perf) if isinstance(perf, dict) else None,
            quality=QualityMetrics.from_dict(quality) if isinstance(quality, dict) else None,
            business=BusinessMetrics.from_dict(business) if isinstance(business, dict) else None,
        )


# Metric kinds carried by every ExecutionSample, in buffer order.
EXECUTION_METRICS: tuple[str, ...] = (
    "execution_time",
    "memory_usage",
    "cpu_usage",
    "error_rate",
    "requests_per_second",
    "concurrent_executions",
    "cold_start_count",
    "retry_count",
)


@dataclass(frozen=True)
class ExecutionSample:
    """Per-function execution statistics reported by the metric source."""

    function_name: str
    timestamp: datetime
    execution_time: float = 0.0
    memory_usage: float = 0.0
    cpu_usage: float = 0.0
    error_rate: float = 0.0
    requests_per_second: float = 0.0
    concurrent_executions: float = 0.0
    cold_start_count: float = 0.0
    retry_count: float = 0.0

    def values(self) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in EXECUTION_METRICS}


@dataclass(frozen=True)
class MetricSample:
    """A single timestamped value in a rolling buffer."""

    entity: str
    metric: str
    timestamp: datetime
    value: float


_SAMPLE_KEYS: dict[str, tuple[str, ...]] = {
    "execution_time": ("execution_time", "executionTime", "avgExecutionTime"),
    "memory_usage": ("memory_usage", "memoryUsage"),
    "cpu_usage": ("cpu_usage", "cpuUsage"),
    "error_rate": ("error_rate", "errorRate"),
    "requests_per_second": ("requests_per_second", "requestsPerSecond"),
    "concurrent_executions": ("concurrent_executions", "concurrentExecutions"),
    "cold_start_count": ("cold_start_count", "coldStartCount"),
    "retry_count": ("retry_count", "retryCount"),
}


def _parse_timestamp(raw: Any) -> datetime | None:
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=UTC)
    if isinstance(raw, int | float) and not isinstance(raw, bool):
        # epoch milliseconds
        return datetime.fromtimestamp(raw / 1000, tz=UTC)
    if isinstance(raw, str) and raw:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def sample_from_dict(data: dict[str, Any], received_at: datetime | None = None) -> ExecutionSample:
    """Build an ExecutionSample from a JSON document.

    Raises:
        ValueError: if the entity name is missing or a value is not numeric.
    """
    name = data.get("function_name") or data.get("functionName") or data.get("entity")
    if not name:
        raise ValueError("execution sample is missing function_name")
    values: dict[str, float] = {}
    for metric, keys in _SAMPLE_KEYS.items():
        raw = _pick(data, *keys)
        values[metric] = raw if raw is not None else 0.0
    timestamp = _parse_timestamp(data.get("timestamp")) or received_at or datetime.now(tz=UTC)
    return ExecutionSample(function_name=str(name), timestamp=timestamp, **values)
