"""FastAPI application factory for the Vigil admin API.

Usage::

    from vigil.api.app import create_app

    app = create_app(lifecycle=lifecycle, scheduler=scheduler, push_source=source)

The factory is used by both the production bootstrap (``vigil.app``) and
the tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vigil.api.routes import router
from vigil.api.schemas import ErrorResponse
from vigil.errors import AlertNotFoundError, InvalidTransitionError, RuleConfigError

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    lifecycle: Any,
    scheduler: Any = None,
    push_source: Any = None,
    monitor: Any = None,
    store: Any = None,
) -> FastAPI:
    """Create and configure the Vigil FastAPI application.

    Args:
        lifecycle:   AlertLifecycleManager.
        scheduler:   PassScheduler backing the manual trigger path.
        push_source: PushMetricSource, if snapshots and samples may be pushed.
        monitor:     PerformanceMonitor, for the analysis overview.
        store:       AlertStore, for derived analysis records.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from vigil import __version__

    app = FastAPI(
        title="Vigil",
        summary="Alerting and anomaly-detection engine",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    # Store dependencies in app.state so route handlers can access them
    # without module-level globals.
    app.state.lifecycle = lifecycle
    app.state.scheduler = scheduler
    app.state.push_source = push_source
    app.state.monitor = monitor
    app.state.store = store

    app.include_router(router, prefix=_API_PREFIX)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    def _envelope(status_code: int, error: str, detail: str) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        detail = ""
        if errors:
            locs = errors[0].get("loc", ())
            field = str(locs[-1]) if locs else ""
            detail = f"{field}: {errors[0].get('msg', '')}" if field else str(errors[0].get("msg", ""))
        return _envelope(400, "INVALID_REQUEST", detail)

    @app.exception_handler(AlertNotFoundError)
    async def not_found_handler(_request: Request, exc: AlertNotFoundError) -> JSONResponse:
        return _envelope(404, "ALERT_NOT_FOUND", str(exc))

    @app.exception_handler(InvalidTransitionError)
    async def transition_handler(_request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _envelope(409, "INVALID_TRANSITION", str(exc))

    @app.exception_handler(RuleConfigError)
    async def rule_config_handler(_request: Request, exc: RuleConfigError) -> JSONResponse:
        return _envelope(400, "INVALID_RULE", exc.reason)

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return _envelope(400, "INVALID_REQUEST", str(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return _envelope(500, "INTERNAL_ERROR", "An unexpected error occurred.")

    return app
