"""Statistical anomaly detection over a rolling buffer.

The buffer is split into a recent window (the newest ``recent_window``
samples) and a historical window (everything before it).  The recent mean
is compared against the historical mean in units of the historical
population standard deviation.  A flat history (standard deviation 0)
yields deviation 0, never an anomaly.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from vigil.clock import Clock
from vigil.models.analysis import AnomalyRecord
from vigil.models.metrics import MetricSample
from vigil.models.rules import Severity

_log = structlog.get_logger(component="analysis.anomaly")


@dataclass(frozen=True)
class DeviationStats:
    historical_mean: float
    historical_std: float
    recent_mean: float
    deviation: float
    history_size: int
    recent_size: int


def severity_for(deviation: float) -> Severity:
    if deviation > 5:
        return Severity.CRITICAL
    if deviation > 3:
        return Severity.HIGH
    if deviation > 2:
        return Severity.MEDIUM
    return Severity.LOW


def recommended_action(metric: str, deviation: float) -> str:
    if metric == "execution_time":
        return "scale_up_instances" if deviation > 3 else "optimize_code"
    return {
        "memory_usage": "increase_memory_allocation",
        "error_rate": "investigate_errors",
    }.get(metric, "monitor_closely")


class AnomalyDetector:
    """Flags a metric whose recent mean strays more than ``threshold``
    standard deviations from its history."""

    def __init__(
        self,
        recent_window: int = 20,
        min_history: int = 10,
        threshold: float = 2.0,
        clock: Clock | None = None,
    ) -> None:
        self.recent_window = recent_window
        self.min_history = min_history
        self.threshold = threshold
        self._clock = clock or Clock()

    @property
    def min_samples(self) -> int:
        """Buffer length needed before detection can run at all."""
        return self.recent_window + self.min_history

    def measure(self, values: Sequence[float]) -> DeviationStats | None:
        """Compute deviation statistics, or None when history is too short."""
        if len(values) <= self.recent_window:
            return None
        recent = values[-self.recent_window :]
        historical = values[: -self.recent_window]
        if len(historical) < self.min_history:
            return None

        historical_mean = statistics.fmean(historical)
        historical_std = statistics.pstdev(historical)
        recent_mean = statistics.fmean(recent)
        deviation = 0.0 if historical_std == 0 else abs(recent_mean - historical_mean) / historical_std
        return DeviationStats(
            historical_mean=historical_mean,
            historical_std=historical_std,
            recent_mean=recent_mean,
            deviation=deviation,
            history_size=len(historical),
            recent_size=len(recent),
        )

    def detect(self, entity: str, metric: str, samples: Sequence[MetricSample]) -> AnomalyRecord | None:
        stats = self.measure([s.value for s in samples])
        if stats is None or stats.deviation <= self.threshold:
            return None
        record = AnomalyRecord(
            entity=entity,
            metric=metric,
            observed_value=stats.recent_mean,
            expected_value=stats.historical_mean,
            deviation=stats.deviation,
            severity=severity_for(stats.deviation),
            detected_at=self._clock.now(),
            sample_count=stats.history_size + stats.recent_size,
            recommended_action=recommended_action(metric, stats.deviation),
        )
        _log.info(
            "anomaly_detected",
            entity=entity,
            metric=metric,
            deviation=round(stats.deviation, 3),
            severity=record.severity.value,
        )
        return record
