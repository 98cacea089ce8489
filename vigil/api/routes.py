"""Admin API routes.

Dependencies are read from ``request.app.state`` (set by create_app):
lifecycle, scheduler, push_source, monitor, store.
"""

from __future__ import annotations

import dataclasses
from datetime import timedelta
from typing import Any

import structlog
from fastapi import APIRouter, Body, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from vigil.api.schemas import (
    AcceptedResponse,
    AcknowledgeRequest,
    AlertListResponse,
    AlertOut,
    DashboardResponse,
    ErrorResponse,
    HealthResponse,
    ResolveRequest,
    SamplesRequest,
    SuppressRequest,
    TriggerResponse,
)
from vigil.errors import RuleConfigError
from vigil.models.alerts import AlertStatus
from vigil.models.metrics import MetricSnapshot, sample_from_dict
from vigil.rules.loader import parse_rule, rule_to_dict
from vigil.store.base import ANOMALIES, SCALING_RECOMMENDATIONS, TRENDS

_log = structlog.get_logger(component="api.routes")

router = APIRouter()

_RECENT_RECORDS_LIMIT = 20


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())


# ---------------------------------------------------------------------------
# Health and metrics
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    from vigil import __version__

    scheduler = request.app.state.scheduler
    return HealthResponse(status="ok", version=__version__, passes=scheduler.names if scheduler else [])


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


@router.get("/alerts", response_model=AlertListResponse)
async def list_alerts(
    request: Request,
    status: AlertStatus | None = None,
    rule_id: str | None = None,
    limit: int = 100,
) -> AlertListResponse:
    limit = max(1, min(limit, 1000))
    alerts = await request.app.state.lifecycle.list_alerts(status=status, rule_id=rule_id, limit=limit)
    return AlertListResponse(alerts=[AlertOut.from_instance(a) for a in alerts], count=len(alerts))


@router.get("/alerts/{alert_id}", response_model=AlertOut)
async def get_alert(request: Request, alert_id: str) -> AlertOut:
    return AlertOut.from_instance(await request.app.state.lifecycle.get_alert(alert_id))


@router.post("/alerts/{alert_id}/acknowledge", response_model=AlertOut)
async def acknowledge_alert(request: Request, alert_id: str, body: AcknowledgeRequest) -> AlertOut:
    instance = await request.app.state.lifecycle.acknowledge_alert(alert_id, body.user)
    return AlertOut.from_instance(instance)


@router.post("/alerts/{alert_id}/resolve", response_model=AlertOut)
async def resolve_alert(request: Request, alert_id: str, body: ResolveRequest) -> AlertOut:
    instance = await request.app.state.lifecycle.resolve_alert(alert_id, body.user, body.resolution)
    return AlertOut.from_instance(instance)


@router.post("/alerts/{alert_id}/suppress", response_model=AlertOut)
async def suppress_alert(request: Request, alert_id: str, body: SuppressRequest) -> AlertOut:
    duration = timedelta(minutes=body.duration_minutes)
    instance = await request.app.state.lifecycle.suppress_alert(alert_id, body.user, duration)
    return AlertOut.from_instance(instance)


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(request: Request) -> DashboardResponse:
    return DashboardResponse.from_dashboard(await request.app.state.lifecycle.dashboard())


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@router.get("/rules")
async def list_rules(request: Request) -> dict[str, Any]:
    rules = await request.app.state.lifecycle.list_rules()
    return {"rules": [rule_to_dict(r) for r in sorted(rules, key=lambda r: r.rule_id)]}


@router.put("/rules/{rule_id}")
async def put_rule(request: Request, rule_id: str, document: dict[str, Any] = Body(...)) -> dict[str, Any]:
    body_id = document.get("rule_id") or document.get("ruleId")
    if body_id and body_id != rule_id:
        raise RuleConfigError(rule_id, f"body rule id {body_id!r} does not match path")
    rule = parse_rule({**document, "rule_id": rule_id})
    await request.app.state.lifecycle.put_rule(rule)
    return rule_to_dict(rule)


# ---------------------------------------------------------------------------
# Metric ingestion
# ---------------------------------------------------------------------------


@router.post("/snapshots", response_model=AcceptedResponse, status_code=202)
async def push_snapshot(request: Request, document: dict[str, Any] = Body(...)) -> Any:
    source = request.app.state.push_source
    if source is None:
        return _error(400, "INVALID_REQUEST", "metric source does not accept pushed snapshots")
    try:
        snapshot = MetricSnapshot.from_dict(document)
    except (TypeError, ValueError) as exc:
        return _error(400, "INVALID_REQUEST", f"invalid snapshot: {exc}")
    source.push_snapshot(snapshot)
    return AcceptedResponse(accepted=1)


@router.post("/samples", response_model=AcceptedResponse, status_code=202)
async def push_samples(request: Request, body: SamplesRequest) -> Any:
    source = request.app.state.push_source
    if source is None:
        return _error(400, "INVALID_REQUEST", "metric source does not accept pushed samples")
    try:
        samples = [sample_from_dict(item) for item in body.samples]
    except (TypeError, ValueError) as exc:
        return _error(400, "INVALID_REQUEST", f"invalid sample: {exc}")
    return AcceptedResponse(accepted=source.push_samples(samples))


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@router.get("/analysis")
async def analysis(request: Request) -> dict[str, Any]:
    store = request.app.state.store
    monitor = request.app.state.monitor
    out: dict[str, Any] = monitor.overview() if monitor is not None else {}
    for key, collection in (
        ("anomalies", ANOMALIES),
        ("trends", TRENDS),
        ("scaling_recommendations", SCALING_RECOMMENDATIONS),
    ):
        records = await store.list_records(collection, limit=_RECENT_RECORDS_LIMIT)
        out[key] = [dataclasses.asdict(r) for r in records if dataclasses.is_dataclass(r)]
    return jsonable_encoder(out)


# ---------------------------------------------------------------------------
# Manual trigger
# ---------------------------------------------------------------------------


@router.post("/passes/{name}/trigger", response_model=TriggerResponse)
async def trigger_pass(request: Request, name: str) -> Any:
    scheduler = request.app.state.scheduler
    if scheduler is None or not scheduler.has(name):
        return _error(404, "UNKNOWN_PASS", f"no pass named {name!r}")
    result = await scheduler.trigger(name)
    _log.info("pass_triggered", pass_name=name, success=result.success, skipped=result.skipped)
    return TriggerResponse(**dataclasses.asdict(result))
