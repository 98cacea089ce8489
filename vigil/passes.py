"""The four scheduled passes, as zero-argument coroutines for PassScheduler.

Each returns a small JSON-able dict that ends up in TriggerResult.detail.
"""

from __future__ import annotations

from typing import Any

from vigil.analysis.monitor import PerformanceMonitor
from vigil.lifecycle.manager import AlertLifecycleManager
from vigil.models.config import SchedulerConfig
from vigil.scheduler import PassFn, PassScheduler
from vigil.sources.base import MetricSource

ALERTS = "alerts"
ESCALATIONS = "escalations"
SUPPRESSIONS = "suppressions"
ANALYSIS = "analysis"


def alerts_pass(lifecycle: AlertLifecycleManager, source: MetricSource) -> PassFn:
    async def _run() -> dict[str, Any]:
        snapshot = await source.fetch_snapshot()
        if snapshot is None:
            return {"snapshot": False, "triggered": []}
        triggered = await lifecycle.check_alerts(snapshot)
        return {"snapshot": True, "triggered": [i.alert_id for i in triggered]}

    return _run


def escalations_pass(lifecycle: AlertLifecycleManager) -> PassFn:
    async def _run() -> dict[str, Any]:
        escalated = await lifecycle.process_escalations()
        return {"escalated": [i.alert_id for i in escalated]}

    return _run


def suppressions_pass(lifecycle: AlertLifecycleManager, source: MetricSource) -> PassFn:
    async def _run() -> dict[str, Any]:
        snapshot = await source.fetch_snapshot()
        if snapshot is None:
            return {"snapshot": False, "changed": []}
        changed = await lifecycle.process_suppressions(snapshot)
        return {
            "snapshot": True,
            "changed": [{"alert_id": i.alert_id, "status": i.status.value} for i in changed],
        }

    return _run


def analysis_pass(monitor: PerformanceMonitor, source: MetricSource) -> PassFn:
    async def _run() -> dict[str, Any]:
        ingested = monitor.ingest(await source.fetch_samples())
        result = await monitor.run_pass()
        return {
            "ingested": ingested,
            "entities": result.entities_analyzed,
            "anomalies": len(result.anomalies),
            "trends": len(result.trends),
            "recommendations": len(result.recommendations),
            "applied": len(result.applied),
            "errors": result.errors,
        }

    return _run


def register_passes(
    scheduler: PassScheduler,
    lifecycle: AlertLifecycleManager,
    monitor: PerformanceMonitor,
    source: MetricSource,
    config: SchedulerConfig,
) -> None:
    scheduler.register(ALERTS, alerts_pass(lifecycle, source), config.alerts_interval)
    scheduler.register(ESCALATIONS, escalations_pass(lifecycle), config.escalations_interval)
    scheduler.register(SUPPRESSIONS, suppressions_pass(lifecycle, source), config.suppressions_interval)
    scheduler.register(ANALYSIS, analysis_pass(monitor, source), config.analysis_interval)
