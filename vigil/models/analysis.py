"""Derived analysis records: anomalies, trends and scaling recommendations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import uuid4

from vigil.models.rules import Severity


class TrendDirection(StrEnum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Polarity(StrEnum):
    """Whether a rising value is good or bad for a metric."""

    HIGHER_IS_BETTER = "higher_is_better"
    LOWER_IS_BETTER = "lower_is_better"


@dataclass(frozen=True)
class AnomalyRecord:
    """Immutable once created; later analysis produces new records."""

    entity: str
    metric: str
    observed_value: float
    expected_value: float
    deviation: float
    severity: Severity
    detected_at: datetime
    sample_count: int
    recommended_action: str | None = None
    anomaly_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class TrendEstimate:
    entity: str
    metric: str
    direction: TrendDirection
    percent_change: float
    confidence: float
    slope: float
    intercept: float
    window: timedelta
    sample_count: int
    forecast: tuple[float, ...] = ()
    computed_at: datetime | None = None


@dataclass(frozen=True)
class ScalingRecommendation:
    """Advisory only; enactment goes through the AutoScaler gate."""

    entity: str
    current_instances: int
    recommended_instances: int
    reason: str
    confidence: float
    estimated_cost_impact: float
    estimated_performance_improvement: float
    created_at: datetime
    recommendation_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass
class AnalysisPassResult:
    """Summary of one analysis pass over every buffered entity."""

    anomalies: list[AnomalyRecord] = field(default_factory=list)
    trends: list[TrendEstimate] = field(default_factory=list)
    recommendations: list[ScalingRecommendation] = field(default_factory=list)
    applied: list[ScalingRecommendation] = field(default_factory=list)
    entities_analyzed: int = 0
    errors: list[str] = field(default_factory=list)
