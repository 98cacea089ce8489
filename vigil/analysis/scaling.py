"""Scaling recommendations and the gated auto-scaler.

ScalingAdvisor is advisory only.  AutoScaler enacts a recommendation only
when auto-apply is switched on, the recommendation's confidence clears the
minimum and its estimated cost impact is under the ceiling.  Enacting the
same (entity, recommended_instances) twice is a no-op.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Mapping, Sequence

import structlog

from vigil.actions.base import ActionContext, ActionExecutor
from vigil.clock import Clock
from vigil.models.analysis import ScalingRecommendation
from vigil.models.config import ScalingConfig
from vigil.models.rules import ActionKind, ActionSpec

_log = structlog.get_logger(component="analysis.scaling")

HIGH_LATENCY_REASON = "High execution time with high concurrency"


class ScalingAdvisor:
    def __init__(self, config: ScalingConfig | None = None, clock: Clock | None = None) -> None:
        self._config = config or ScalingConfig()
        self._clock = clock or Clock()

    @property
    def min_samples(self) -> int:
        return self._config.min_samples

    def advise(self, entity: str, series: Mapping[str, Sequence[float]]) -> ScalingRecommendation | None:
        """Recommend more instances when recent latency and concurrency are both high."""
        cfg = self._config
        execution_times = series.get("execution_time", [])
        concurrency = series.get("concurrent_executions", [])
        if len(execution_times) < cfg.min_samples or not concurrency:
            return None

        avg_execution_time = statistics.fmean(execution_times[-cfg.recent_window :])
        avg_concurrency = statistics.fmean(concurrency[-cfg.recent_window :])
        if avg_execution_time <= cfg.latency_threshold_ms or avg_concurrency <= cfg.concurrency_threshold:
            return None

        recommendation = ScalingRecommendation(
            entity=entity,
            current_instances=math.floor(avg_concurrency),
            recommended_instances=math.floor(avg_concurrency * cfg.multiplier),
            reason=HIGH_LATENCY_REASON,
            confidence=cfg.confidence,
            estimated_cost_impact=50.0,
            estimated_performance_improvement=30.0,
            created_at=self._clock.now(),
        )
        _log.info(
            "scaling_recommended",
            entity=entity,
            current=recommendation.current_instances,
            recommended=recommendation.recommended_instances,
            avg_execution_time=round(avg_execution_time, 1),
        )
        return recommendation


class AutoScaler:
    """Applies recommendations through the scale_instances action."""

    def __init__(self, executor: ActionExecutor, config: ScalingConfig | None = None) -> None:
        self._executor = executor
        self._config = config or ScalingConfig()
        self._applied: set[tuple[str, int]] = set()

    def eligible(self, recommendation: ScalingRecommendation) -> bool:
        cfg = self._config
        return (
            cfg.auto_apply
            and recommendation.confidence > cfg.min_apply_confidence
            and recommendation.estimated_cost_impact < cfg.cost_ceiling
        )

    async def apply(self, recommendation: ScalingRecommendation) -> bool:
        """Enact *recommendation* if it passes the gate.  Returns True when newly applied."""
        if not self.eligible(recommendation):
            return False
        key = (recommendation.entity, recommendation.recommended_instances)
        if key in self._applied:
            _log.debug("scaling_already_applied", entity=key[0], instances=key[1])
            return False

        spec = ActionSpec(
            action_id=f"autoscale_{recommendation.entity}",
            kind=ActionKind.SCALE_INSTANCES,
            parameters={"entity": recommendation.entity, "instances": recommendation.recommended_instances},
        )
        context = ActionContext(
            alert_id=recommendation.recommendation_id,
            rule_id="scaling_advisor",
            metric="concurrent_executions",
            value=float(recommendation.current_instances),
            severity="medium",
        )
        record = await self._executor.execute_now(spec, context)
        if not record.success:
            return False
        self._applied.add(key)
        _log.info("scaling_applied", entity=recommendation.entity, instances=recommendation.recommended_instances)
        return True
