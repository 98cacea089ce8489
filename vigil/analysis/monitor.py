"""Performance monitor: owns the rolling buffers and runs the analysis pass.

One pass walks every buffered entity and, for each, detects anomalies,
estimates trends and asks the scaling advisor for a recommendation.
Derived records are appended to the store.  High and critical anomalies are
sent to the configured anomaly channels.  A failure for one entity is
logged and recorded in the pass result; the other entities still run.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import structlog

from vigil.analysis.anomaly import AnomalyDetector
from vigil.analysis.buffer import MetricBufferRegistry
from vigil.analysis.scaling import AutoScaler, ScalingAdvisor
from vigil.analysis.trend import TrendAnalyzer
from vigil.errors import StoreError
from vigil.models.analysis import AnalysisPassResult
from vigil.models.metrics import ExecutionSample
from vigil.models.notices import Notice
from vigil.models.rules import ChannelSpec, Severity
from vigil.notifications.manager import NotificationDispatcher
from vigil.observability.metrics import anomalies_detected_total
from vigil.store.base import ANOMALIES, SCALING_RECOMMENDATIONS, TRENDS, AlertStore

_log = structlog.get_logger(component="analysis.monitor")

_NOTIFY_SEVERITIES = frozenset({Severity.HIGH, Severity.CRITICAL})


class PerformanceMonitor:
    def __init__(
        self,
        buffers: MetricBufferRegistry,
        detector: AnomalyDetector,
        trends: TrendAnalyzer,
        advisor: ScalingAdvisor,
        store: AlertStore,
        dispatcher: NotificationDispatcher | None = None,
        autoscaler: AutoScaler | None = None,
        anomaly_channels: Sequence[ChannelSpec] = (),
        anomaly_metrics: Sequence[str] = ("execution_time", "memory_usage", "error_rate"),
        trend_metrics: Sequence[str] = ("execution_time", "error_rate", "requests_per_second"),
        trend_min_samples: int = 10,
    ) -> None:
        self.buffers = buffers
        self._detector = detector
        self._trends = trends
        self._advisor = advisor
        self._store = store
        self._dispatcher = dispatcher
        self._autoscaler = autoscaler
        self._anomaly_channels = tuple(anomaly_channels)
        self._anomaly_metrics = tuple(anomaly_metrics)
        self._trend_metrics = tuple(trend_metrics)
        self._trend_min_samples = trend_min_samples

    def ingest(self, samples: Iterable[ExecutionSample]) -> int:
        return self.buffers.ingest_many(samples)

    async def run_pass(self) -> AnalysisPassResult:
        result = AnalysisPassResult()
        for entity in self.buffers.entities():
            try:
                await self._analyze_entity(entity, result)
            except Exception as exc:  # noqa: BLE001
                _log.error("entity_analysis_failed", entity=entity, error=str(exc))
                result.errors.append(f"{entity}: {exc}")
                continue
            result.entities_analyzed += 1

        _log.info(
            "analysis_pass_complete",
            entities=result.entities_analyzed,
            anomalies=len(result.anomalies),
            trends=len(result.trends),
            recommendations=len(result.recommendations),
            applied=len(result.applied),
            errors=len(result.errors),
        )
        return result

    async def _analyze_entity(self, entity: str, result: AnalysisPassResult) -> None:
        for metric in self._anomaly_metrics:
            anomaly = self._detector.detect(entity, metric, self.buffers.get(entity, metric))
            if anomaly is None:
                continue
            anomalies_detected_total.labels(metric=metric, severity=anomaly.severity.value).inc()
            result.anomalies.append(anomaly)
            await self._persist(ANOMALIES, anomaly)
            if anomaly.severity in _NOTIFY_SEVERITIES:
                self._notify(Notice.from_anomaly(anomaly), dedup_key=f"{entity}:{metric}")

        for metric in self._trend_metrics:
            samples = self.buffers.get(entity, metric)
            if len(samples) < self._trend_min_samples:
                continue
            estimate = self._trends.analyze(entity, metric, samples)
            result.trends.append(estimate)
            await self._persist(TRENDS, estimate)

        recommendation = self._advisor.advise(entity, self.buffers.series(entity))
        if recommendation is not None:
            result.recommendations.append(recommendation)
            await self._persist(SCALING_RECOMMENDATIONS, recommendation)
            if self._autoscaler is not None and await self._autoscaler.apply(recommendation):
                result.applied.append(recommendation)

    async def _persist(self, collection: str, record: object) -> None:
        try:
            await self._store.append_record(collection, record)
        except StoreError as exc:
            _log.error("derived_record_not_stored", collection=collection, error=str(exc))

    def _notify(self, notice: Notice, dedup_key: str) -> None:
        if self._dispatcher is None:
            return
        for channel in self._anomaly_channels:
            if channel.accepts(notice.severity):
                self._dispatcher.submit(notice, channel, dedup_key=dedup_key)

    def overview(self) -> dict[str, Any]:
        """Latest buffered value of every metric, per entity."""
        entities = self.buffers.entities()
        return {
            "total_entities": len(entities),
            "current_metrics": {entity: self.buffers.latest(entity) for entity in entities},
        }
