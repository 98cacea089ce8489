"""Application bootstrap for Vigil.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config -> logging -> supervisor -> store -> rules -> metric
              source -> notifications -> actions -> lifecycle -> analysis
              -> scheduler -> REST

Shutdown is graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single component failure does not prevent the rest from shutting down.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import timedelta
from typing import TYPE_CHECKING

from vigil.clock import Clock
from vigil.config import load_config
from vigil.models.config import VigilConfig
from vigil.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from vigil.actions.base import ActionExecutor
    from vigil.analysis.monitor import PerformanceMonitor
    from vigil.lifecycle.manager import AlertLifecycleManager
    from vigil.notifications.manager import NotificationDispatcher
    from vigil.scheduler import PassScheduler
    from vigil.sources.base import MetricSource, PushMetricSource
    from vigil.store.base import AlertStore
    from vigil.supervisor import TaskSupervisor

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class VigilApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started (or is
    already stopped).  Pass ``serve_api=False`` to run the engine without
    the REST server, e.g. when embedding it in tests.
    """

    def __init__(
        self,
        config: VigilConfig | None = None,
        clock: Clock | None = None,
        serve_api: bool = True,
    ) -> None:
        self.config = config
        self.clock = clock or Clock()
        self._serve_api = serve_api

        self.supervisor: TaskSupervisor | None = None
        self.store: AlertStore | None = None
        self.source: MetricSource | None = None
        self.push_source: PushMetricSource | None = None
        self.dispatcher: NotificationDispatcher | None = None
        self.executor: ActionExecutor | None = None
        self.lifecycle: AlertLifecycleManager | None = None
        self.monitor: PerformanceMonitor | None = None
        self.scheduler: PassScheduler | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, fmt=self.config.log.format, version=_vigil_version())
        self._log = get_logger("app")
        self._log.info("vigil_starting")

        # --- 3. Task supervisor -----------------------------------------
        from vigil.supervisor import TaskSupervisor

        self.supervisor = TaskSupervisor()

        # --- 4. Store ---------------------------------------------------
        await self._start_store()

        # --- 5. Metric source (HTTP optional, push always) --------------
        await self._start_source()

        # --- 6. Notification dispatcher (optional transports) -----------
        await self._start_notifications()

        # --- 7. Action executor (optional control plane) ----------------
        await self._start_actions()

        # --- 8. Lifecycle manager + rules -------------------------------
        await self._start_lifecycle()

        # --- 9. Performance monitor -------------------------------------
        await self._start_monitor()

        # --- 10. Scheduler ----------------------------------------------
        await self._start_scheduler()

        # --- 11. REST API -----------------------------------------------
        if self._serve_api:
            await self._start_rest()

        self._running = True
        self._log.info("vigil_started", port=self.config.api.port)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_store(self) -> None:
        assert self._log is not None
        try:
            from vigil.store.memory import InMemoryAlertStore

            self.store = InMemoryAlertStore()
            self._log.info("store_started", kind="memory")
        except Exception as exc:
            raise _ComponentError("store", exc) from exc

    async def _start_source(self) -> None:
        assert self._log is not None
        assert self.config is not None
        from vigil.sources.base import HttpMetricSource, PushMetricSource

        self.push_source = PushMetricSource()
        self.source = self.push_source
        if not self.config.metric_source_url:
            self._log.info("metric_source_started", kind="push")
            return
        try:
            self.source = HttpMetricSource(self.config.metric_source_url, clock=self.clock)
            self._log.info("metric_source_started", kind="http", url=self.config.metric_source_url)
        except ValueError as exc:
            # fall back to push-only so the admin API can still feed the engine
            self._log.warning("http_metric_source_disabled", error=str(exc))

    async def _start_notifications(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.supervisor is not None
        from vigil.notifications import NotificationDispatcher, build_notification_dispatcher

        try:
            self.dispatcher = build_notification_dispatcher(
                config=self.config.notifications,
                supervisor=self.supervisor,
                clock=self.clock,
            )
            self._log.info("notifications_started", kinds=sorted(k.value for k in self.dispatcher.kinds))
        except Exception as exc:
            # Non-fatal: every send is recorded as failed in the alert's log
            self._log.warning("notification_transports_failed_to_start", error=str(exc))
            self.dispatcher = NotificationDispatcher(channels=[], supervisor=self.supervisor, clock=self.clock)

    async def _start_actions(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.supervisor is not None
        from vigil.actions import ActionExecutor, build_action_executor, default_handlers

        try:
            self.executor = build_action_executor(self.config.control_plane_url, self.supervisor, clock=self.clock)
        except Exception as exc:
            self._log.warning("control_plane_failed_to_start", error=str(exc))
            self.executor = ActionExecutor(default_handlers(), self.supervisor, control_plane=None, clock=self.clock)

    async def _start_lifecycle(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.store is not None
        assert self.dispatcher is not None
        assert self.executor is not None
        try:
            from vigil.lifecycle.manager import AlertLifecycleManager
            from vigil.rules.defaults import default_rules
            from vigil.rules.loader import load_rules_file

            lifecycle = AlertLifecycleManager(self.store, self.dispatcher, self.executor, clock=self.clock)
            if self.config.rules_file:
                rules, errors = load_rules_file(self.config.rules_file)
                await lifecycle.seed_rules(rules, replace_existing=True)
                self._log.info("rules_loaded", path=self.config.rules_file, valid=len(rules), invalid=len(errors))
            else:
                await lifecycle.seed_rules(default_rules())
            self.lifecycle = lifecycle
        except Exception as exc:
            raise _ComponentError("lifecycle", exc) from exc

    async def _start_monitor(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.store is not None
        assert self.executor is not None
        try:
            from vigil.analysis import (
                AnomalyDetector,
                AutoScaler,
                MetricBufferRegistry,
                PerformanceMonitor,
                ScalingAdvisor,
                TrendAnalyzer,
            )
            from vigil.models.rules import ChannelKind, ChannelSpec, Severity

            cfg = self.config
            max_age = timedelta(hours=cfg.buffer.max_age_hours) if cfg.buffer.max_age_hours else None
            anomaly_channels = [
                ChannelSpec(
                    channel_id=f"anomaly_{kind}",
                    kind=ChannelKind(kind),
                    severities=frozenset({Severity.HIGH, Severity.CRITICAL}),
                )
                for kind in cfg.notifications.anomaly_channels
            ]
            self.monitor = PerformanceMonitor(
                buffers=MetricBufferRegistry(capacity=cfg.buffer.capacity, max_age=max_age),
                detector=AnomalyDetector(
                    recent_window=cfg.anomaly.recent_window,
                    min_history=cfg.anomaly.min_history,
                    threshold=cfg.anomaly.threshold,
                    clock=self.clock,
                ),
                trends=TrendAnalyzer(
                    forecast_steps=cfg.trend.forecast_steps,
                    stable_band_pct=cfg.trend.stable_band_pct,
                    polarity=cfg.trend.polarity_overrides,
                    clock=self.clock,
                ),
                advisor=ScalingAdvisor(cfg.scaling, clock=self.clock),
                store=self.store,
                dispatcher=self.dispatcher,
                autoscaler=AutoScaler(self.executor, cfg.scaling),
                anomaly_channels=anomaly_channels,
                anomaly_metrics=cfg.anomaly.tracked_metrics,
                trend_metrics=cfg.trend.tracked_metrics,
                trend_min_samples=cfg.trend.min_samples,
            )
            self._log.info("monitor_started", buffer_capacity=cfg.buffer.capacity)
        except Exception as exc:
            raise _ComponentError("monitor", exc) from exc

    async def _start_scheduler(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.lifecycle is not None
        assert self.monitor is not None
        assert self.source is not None
        try:
            from vigil.passes import register_passes
            from vigil.scheduler import PassScheduler

            scheduler = PassScheduler(clock=self.clock)
            register_passes(scheduler, self.lifecycle, self.monitor, self.source, self.config.scheduler)
            scheduler.start()
            self.scheduler = scheduler
        except Exception as exc:
            raise _ComponentError("scheduler", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        try:
            import uvicorn

            from vigil.api import create_app

            fastapi_app = create_app(
                lifecycle=self.lifecycle,
                scheduler=self.scheduler,
                push_source=self.push_source,
                monitor=self.monitor,
                store=self.store,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest_api_started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("vigil_shutting_down")
        self._running = False

        if self._rest_server is not None:
            # uvicorn exits its serve() loop on this flag
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        if self._background_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=_SHUTDOWN_GRACE_SECONDS,
                )
            except TimeoutError:
                for task in self._background_tasks:
                    task.cancel()
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("scheduler", self.scheduler)
        await self._stop_component("supervisor", self.supervisor)

        log.info("vigil_stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component_stop_timed_out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component_stop_failed", component=name, error=str(exc))


def _vigil_version() -> str:
    from vigil import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = VigilApp()
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        await app.start()
        await stop_requested.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical("fatal_startup_error", component=exc.component, error=str(exc.cause))
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
