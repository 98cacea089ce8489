"""Trend and anomaly analysis over rolling execution-sample buffers."""

from vigil.analysis.anomaly import AnomalyDetector, DeviationStats, recommended_action, severity_for
from vigil.analysis.buffer import MetricBufferRegistry, RollingBuffer
from vigil.analysis.monitor import PerformanceMonitor
from vigil.analysis.scaling import AutoScaler, ScalingAdvisor
from vigil.analysis.trend import DEFAULT_POLARITY, TrendAnalyzer, fit_line, percent_change

__all__ = [
    "DEFAULT_POLARITY",
    "AnomalyDetector",
    "AutoScaler",
    "DeviationStats",
    "MetricBufferRegistry",
    "PerformanceMonitor",
    "RollingBuffer",
    "ScalingAdvisor",
    "TrendAnalyzer",
    "fit_line",
    "percent_change",
    "recommended_action",
    "severity_for",
]
