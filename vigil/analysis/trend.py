"""Least-squares trend estimation with explicit per-metric polarity.

Whether a rising series is "improving" or "declining" depends on the
metric: more requests per second is good, more execution time is bad.
Every tracked metric resolves its polarity through ``DEFAULT_POLARITY``
(overridable per deployment); metrics absent from the table are treated as
higher-is-better.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta

from vigil.clock import Clock
from vigil.models.analysis import Polarity, TrendDirection, TrendEstimate
from vigil.models.metrics import MetricSample

DEFAULT_POLARITY: dict[str, Polarity] = {
    # execution samples
    "execution_time": Polarity.LOWER_IS_BETTER,
    "memory_usage": Polarity.LOWER_IS_BETTER,
    "cpu_usage": Polarity.LOWER_IS_BETTER,
    "error_rate": Polarity.LOWER_IS_BETTER,
    "requests_per_second": Polarity.HIGHER_IS_BETTER,
    "concurrent_executions": Polarity.LOWER_IS_BETTER,
    "cold_start_count": Polarity.LOWER_IS_BETTER,
    "retry_count": Polarity.LOWER_IS_BETTER,
    # snapshot metrics
    "average_generation_time": Polarity.LOWER_IS_BETTER,
    "success_rate": Polarity.HIGHER_IS_BETTER,
    "average_quality_score": Polarity.HIGHER_IS_BETTER,
    "user_satisfaction_score": Polarity.HIGHER_IS_BETTER,
    "premium_conversion_rate": Polarity.HIGHER_IS_BETTER,
    "revenue_per_user": Polarity.HIGHER_IS_BETTER,
}


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float
    r_squared: float

    def predict(self, x: float) -> float:
        return self.intercept + self.slope * x


def fit_line(values: Sequence[float]) -> LinearFit:
    """Ordinary least squares of *values* against their index 0..n-1.

    Requires at least two values.  R² is 0 for a constant series.
    """
    n = len(values)
    if n < 2:
        raise ValueError("at least two values are required")
    sum_x = n * (n - 1) / 2
    sum_xx = (n - 1) * n * (2 * n - 1) / 6
    sum_y = sum(values)
    sum_xy = sum(i * y for i, y in enumerate(values))

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_tot = sum((y - mean_y) ** 2 for y in values)
    if ss_tot == 0:
        return LinearFit(slope, intercept, 0.0)
    ss_res = sum((y - (intercept + slope * i)) ** 2 for i, y in enumerate(values))
    return LinearFit(slope, intercept, 1 - ss_res / ss_tot)


def percent_change(first: float, last: float) -> float:
    """Relative change from *first* to *last*, in percent.  0 when *first* is 0."""
    if first == 0:
        return 0.0
    return (last - first) / abs(first) * 100


class TrendAnalyzer:
    def __init__(
        self,
        forecast_steps: int = 5,
        stable_band_pct: float = 5.0,
        polarity: Mapping[str, Polarity | str] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.forecast_steps = forecast_steps
        self.stable_band_pct = stable_band_pct
        self._polarity = dict(DEFAULT_POLARITY)
        for metric, value in (polarity or {}).items():
            self._polarity[metric] = Polarity(value)
        self._clock = clock or Clock()

    def polarity_of(self, metric: str) -> Polarity:
        return self._polarity.get(metric, Polarity.HIGHER_IS_BETTER)

    def direction(self, metric: str, change_pct: float) -> TrendDirection:
        if abs(change_pct) < self.stable_band_pct:
            return TrendDirection.STABLE
        rising = change_pct > 0
        if self.polarity_of(metric) == Polarity.LOWER_IS_BETTER:
            rising = not rising
        return TrendDirection.IMPROVING if rising else TrendDirection.DECLINING

    def analyze(self, entity: str, metric: str, samples: Sequence[MetricSample]) -> TrendEstimate:
        now = self._clock.now()
        if len(samples) < 2:
            return TrendEstimate(
                entity=entity,
                metric=metric,
                direction=TrendDirection.STABLE,
                percent_change=0.0,
                confidence=0.0,
                slope=0.0,
                intercept=samples[0].value if samples else 0.0,
                window=timedelta(0),
                sample_count=len(samples),
                computed_at=now,
            )

        values = [s.value for s in samples]
        fit = fit_line(values)
        change = round(percent_change(values[0], values[-1]), 2)
        n = len(values)
        return TrendEstimate(
            entity=entity,
            metric=metric,
            direction=self.direction(metric, change),
            percent_change=change,
            confidence=round(min(max(fit.r_squared, 0.0), 1.0), 2),
            slope=fit.slope,
            intercept=fit.intercept,
            window=samples[-1].timestamp - samples[0].timestamp,
            sample_count=n,
            forecast=tuple(fit.predict(n + step) for step in range(self.forecast_steps)),
            computed_at=now,
        )
