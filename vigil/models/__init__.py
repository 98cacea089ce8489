"""Core data structures for Vigil."""

from vigil.models.alerts import (
    OPEN_STATUSES,
    ActionRecord,
    AlertDashboard,
    AlertInstance,
    AlertStatus,
    NotificationRecord,
)
from vigil.models.analysis import (
    AnalysisPassResult,
    AnomalyRecord,
    Polarity,
    ScalingRecommendation,
    TrendDirection,
    TrendEstimate,
)
from vigil.models.config import VigilConfig
from vigil.models.metrics import (
    BusinessMetrics,
    ExecutionSample,
    MetricSample,
    MetricSnapshot,
    PerformanceMetrics,
    QualityMetrics,
)
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

__all__ = [
    "OPEN_STATUSES",
    "ActionKind",
    "ActionRecord",
    "ActionSpec",
    "AlertDashboard",
    "AlertInstance",
    "AlertRule",
    "AlertStatus",
    "AnalysisPassResult",
    "AnomalyRecord",
    "BusinessMetrics",
    "ChannelKind",
    "ChannelSpec",
    "EscalationStep",
    "ExecutionSample",
    "MetricCategory",
    "MetricSample",
    "MetricSnapshot",
    "NotificationRecord",
    "Operator",
    "PerformanceMetrics",
    "Polarity",
    "QualityMetrics",
    "ScalingRecommendation",
    "Severity",
    "TrendDirection",
    "TrendEstimate",
    "VigilConfig",
]
