"""Metric source collaborators."""

from vigil.sources.base import HttpMetricSource, MetricSource, PushMetricSource

__all__ = ["HttpMetricSource", "MetricSource", "PushMetricSource"]
