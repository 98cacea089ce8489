"""Category-scoped metric lookup against a MetricSnapshot.

One extractor per MetricCategory, selected through a table.  Every
extractor returns None ("no value") when the snapshot lacks the section or
the named metric; callers treat that as no signal, never as False.
"""

from __future__ import annotations

from collections.abc import Callable

from vigil.models.metrics import BusinessMetrics, MetricSnapshot, PerformanceMetrics, QualityMetrics
from vigil.models.rules import MetricCategory

_PERFORMANCE_FIELDS: dict[str, Callable[[PerformanceMetrics], float | None]] = {
    "average_generation_time": lambda s: s.average_generation_time,
    "success_rate": lambda s: s.success_rate,
    "error_rate": lambda s: s.error_rate,
}

_QUALITY_FIELDS: dict[str, Callable[[QualityMetrics], float | None]] = {
    "average_quality_score": lambda s: s.average_quality_score,
    "user_satisfaction_score": lambda s: s.user_satisfaction_score,
}

_BUSINESS_FIELDS: dict[str, Callable[[BusinessMetrics], float | None]] = {
    "premium_conversion_rate": lambda s: s.premium_conversion_rate,
    "revenue_per_user": lambda s: s.revenue_per_user,
}


def _performance(snapshot: MetricSnapshot, metric: str) -> float | None:
    section = snapshot.performance
    if section is None:
        return None
    getter = _PERFORMANCE_FIELDS.get(metric)
    return getter(section) if getter is not None else section.extra.get(metric)


def _quality(snapshot: MetricSnapshot, metric: str) -> float | None:
    section = snapshot.quality
    if section is None:
        return None
    getter = _QUALITY_FIELDS.get(metric)
    return getter(section) if getter is not None else section.extra.get(metric)


def _business(snapshot: MetricSnapshot, metric: str) -> float | None:
    section = snapshot.business
    if section is None:
        return None
    getter = _BUSINESS_FIELDS.get(metric)
    return getter(section) if getter is not None else section.extra.get(metric)


_EXTRACTORS: dict[MetricCategory, Callable[[MetricSnapshot, str], float | None]] = {
    MetricCategory.PERFORMANCE: _performance,
    MetricCategory.QUALITY: _quality,
    MetricCategory.BUSINESS: _business,
}


def extract_metric(snapshot: MetricSnapshot, category: MetricCategory, metric: str) -> float | None:
    """Return the named metric from the snapshot section for *category*."""
    return _EXTRACTORS[category](snapshot, metric)
