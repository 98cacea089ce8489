"""Alert lifecycle: trigger, escalate, acknowledge, suppress, resolve.

State machine per AlertInstance::

    active -> acknowledged -> resolved
    active -> suppressed -> active (expiry, condition still true)
                         -> resolved (expiry, condition cleared)
    active|acknowledged -> escalated in place (severity bump, level + 1)

Every write to an instance happens under that instance's lock, so the
fire-and-forget notification and action callbacks can append to an
alert's logs while a pass or an operator is changing its status without
either update being lost.  Overlapping passes of the same kind are
prevented one level up by the PassScheduler.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import timedelta

import structlog

from vigil.actions.base import ActionContext, ActionExecutor
from vigil.clock import Clock, elapsed_since
from vigil.errors import AlertNotFoundError, InvalidTransitionError, StoreError
from vigil.models.alerts import (
    OPEN_STATUSES,
    ActionRecord,
    AlertDashboard,
    AlertInstance,
    AlertStatus,
    NotificationRecord,
)
from vigil.models.metrics import MetricSnapshot
from vigil.models.notices import Notice
from vigil.models.rules import ActionSpec, AlertRule, ChannelSpec
from vigil.notifications.manager import NotificationDispatcher
from vigil.observability.metrics import (
    alerts_escalated_total,
    alerts_resolved_total,
    alerts_triggered_total,
    rule_errors_total,
)
from vigil.rules.evaluator import evaluate
from vigil.rules.extraction import extract_metric
from vigil.store.base import AlertStore

_log = structlog.get_logger(component="lifecycle")

CONDITION_RESOLVED = "condition_resolved"
MANUALLY_RESOLVED = "manually_resolved"
SYSTEM_USER = "system"

# A suppressed instance still counts as "the" instance for its rule: no
# duplicate is created until the suppression pass re-activates or resolves it.
_DEDUP_STATUSES = OPEN_STATUSES | {AlertStatus.SUPPRESSED}

_DASHBOARD_HISTORY_WINDOW = timedelta(hours=24)
_DASHBOARD_HISTORY_LIMIT = 50


def format_message(rule: AlertRule, value: float) -> str:
    return f"{rule.name}: {rule.metric} is {value:.2f}, {rule.operator.value} threshold of {rule.threshold}"


class AlertLifecycleManager:
    """Owns the alert state machine on top of an AlertStore."""

    def __init__(
        self,
        store: AlertStore,
        dispatcher: NotificationDispatcher,
        executor: ActionExecutor,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._executor = executor
        self._clock = clock or Clock()
        # alert_id -> (lock, holders + waiters); an entry lives only while in use
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def list_rules(self) -> list[AlertRule]:
        return await self._store.list_rules()

    async def put_rule(self, rule: AlertRule) -> None:
        await self._store.put_rule(rule)
        _log.info("rule_saved", rule_id=rule.rule_id, enabled=rule.enabled)

    async def seed_rules(self, rules: Iterable[AlertRule], replace_existing: bool = False) -> int:
        """Store *rules* if the store holds none yet (or always, when *replace_existing*)."""
        if not replace_existing and await self._store.list_rules():
            return 0
        count = 0
        for rule in rules:
            await self._store.put_rule(rule)
            count += 1
        _log.info("rules_seeded", count=count)
        return count

    # ------------------------------------------------------------------
    # Evaluation pass
    # ------------------------------------------------------------------

    async def check_alerts(self, snapshot: MetricSnapshot) -> list[AlertInstance]:
        """Evaluate every enabled rule against *snapshot*.

        Returns the newly triggered instances.  A failure while handling one
        rule is logged and counted; the other rules are still evaluated.
        """
        try:
            rules = await self._store.list_rules(enabled_only=True)
        except StoreError as exc:
            _log.error("rules_load_failed", error=str(exc))
            return []

        outcomes = await asyncio.gather(*(self._check_rule_isolated(rule, snapshot) for rule in rules))
        triggered = [instance for instance in outcomes if instance is not None]
        _log.info("alert_check_complete", rules=len(rules), triggered=len(triggered))
        return triggered

    async def _check_rule_isolated(self, rule: AlertRule, snapshot: MetricSnapshot) -> AlertInstance | None:
        try:
            return await self._check_rule(rule, snapshot)
        except Exception as exc:  # noqa: BLE001
            rule_errors_total.labels(rule_id=rule.rule_id).inc()
            _log.error("rule_evaluation_failed", rule_id=rule.rule_id, error=str(exc))
            return None

    async def _check_rule(self, rule: AlertRule, snapshot: MetricSnapshot) -> AlertInstance | None:
        value = extract_metric(snapshot, rule.category, rule.metric)
        if value is None:
            _log.debug("metric_not_in_snapshot", rule_id=rule.rule_id, metric=rule.metric)
            return None

        existing = await self._store.find_instances(rule_id=rule.rule_id, statuses=_DEDUP_STATUSES)

        if not evaluate(value, rule.operator, rule.threshold):
            for instance in existing:
                if not instance.is_open:
                    continue
                try:
                    await self._resolve(instance.alert_id, SYSTEM_USER, CONDITION_RESOLVED, allowed=OPEN_STATUSES)
                except InvalidTransitionError:
                    # an operator moved it first
                    continue
            return None

        if existing:
            return None
        if await self._in_cooldown(rule):
            _log.debug("rule_in_cooldown", rule_id=rule.rule_id)
            return None
        return await self._trigger(rule, value)

    async def _in_cooldown(self, rule: AlertRule) -> bool:
        if rule.cooldown <= timedelta(0):
            return False
        latest = await self._store.find_instances(rule_id=rule.rule_id, limit=1)
        if not latest:
            return False
        return self._age(latest[0]) < rule.cooldown

    async def _trigger(self, rule: AlertRule, value: float) -> AlertInstance:
        now = self._clock.now()
        instance = AlertInstance(
            alert_id=f"{rule.rule_id}_{int(now.timestamp() * 1000)}",
            rule_id=rule.rule_id,
            rule_name=rule.name,
            category=rule.category,
            status=AlertStatus.ACTIVE,
            severity=rule.severity,
            metric=rule.metric,
            current_value=value,
            threshold=rule.threshold,
            message=format_message(rule, value),
            created_at=now,
            created_monotonic=self._clock.monotonic(),
        )
        async with self._locked(instance.alert_id):
            await self._store.save_instance(instance)

        alerts_triggered_total.labels(rule_id=rule.rule_id, severity=rule.severity.value).inc()
        _log.info(
            "alert_triggered",
            alert_id=instance.alert_id,
            rule_id=rule.rule_id,
            severity=rule.severity.value,
            value=value,
        )

        channels = [c for c in rule.notification_channels if c.accepts(rule.severity)]
        self._fan_out(instance, channels, rule.auto_actions)
        return instance

    # ------------------------------------------------------------------
    # Escalation pass
    # ------------------------------------------------------------------

    async def process_escalations(self) -> list[AlertInstance]:
        """Apply at most one overdue escalation step to each open instance."""
        try:
            candidates = await self._store.find_instances(statuses=OPEN_STATUSES)
        except StoreError as exc:
            _log.error("escalation_candidates_load_failed", error=str(exc))
            return []

        outcomes = await asyncio.gather(*(self._escalate_isolated(c.alert_id) for c in candidates))
        escalated = [instance for instance in outcomes if instance is not None]
        if escalated:
            _log.info("escalation_pass_complete", candidates=len(candidates), escalated=len(escalated))
        return escalated

    async def _escalate_isolated(self, alert_id: str) -> AlertInstance | None:
        try:
            return await self._escalate(alert_id)
        except Exception as exc:  # noqa: BLE001
            _log.error("escalation_failed", alert_id=alert_id, error=str(exc))
            return None

    async def _escalate(self, alert_id: str) -> AlertInstance | None:
        async with self._locked(alert_id):
            instance = await self._store.get_instance(alert_id)
            if instance is None or not instance.is_open:
                return None
            rule = await self._store.get_rule(instance.rule_id)
            if rule is None:
                return None

            age = self._age(instance)
            for index, step in enumerate(rule.escalation_steps):
                if index + 1 > instance.escalation_level and age >= step.trigger_after:
                    break
            else:
                return None

            instance.escalation_level += 1
            instance.severity = step.severity
            instance.last_escalated_at = self._clock.now()
            await self._store.save_instance(instance)

        alerts_escalated_total.labels(rule_id=rule.rule_id, severity=step.severity.value).inc()
        _log.info(
            "alert_escalated",
            alert_id=alert_id,
            step_id=step.step_id,
            level=instance.escalation_level,
            severity=step.severity.value,
        )
        self._fan_out(instance, step.notification_channels, step.auto_actions)
        return instance

    # ------------------------------------------------------------------
    # Suppression pass
    # ------------------------------------------------------------------

    async def process_suppressions(self, snapshot: MetricSnapshot) -> list[AlertInstance]:
        """Re-evaluate suppressed instances whose suppression has expired.

        Condition still true: back to active.  Condition cleared: resolved
        with ``condition_resolved``.  No value in *snapshot* (or the rule is
        gone): left suppressed until a later pass.
        """
        try:
            suppressed = await self._store.find_instances(statuses=[AlertStatus.SUPPRESSED])
        except StoreError as exc:
            _log.error("suppressed_alerts_load_failed", error=str(exc))
            return []

        changed: list[AlertInstance] = []
        for candidate in suppressed:
            try:
                instance = await self._reevaluate_suppressed(candidate.alert_id, snapshot)
            except Exception as exc:  # noqa: BLE001
                _log.error("suppression_reevaluation_failed", alert_id=candidate.alert_id, error=str(exc))
                continue
            if instance is not None:
                changed.append(instance)
        return changed

    async def _reevaluate_suppressed(self, alert_id: str, snapshot: MetricSnapshot) -> AlertInstance | None:
        async with self._locked(alert_id):
            instance = await self._store.get_instance(alert_id)
            if instance is None or instance.status != AlertStatus.SUPPRESSED:
                return None
            if not self._suppression_expired(instance):
                return None
            rule = await self._store.get_rule(instance.rule_id)
            if rule is None:
                _log.warning("suppressed_alert_rule_missing", alert_id=alert_id, rule_id=instance.rule_id)
                return None
            value = extract_metric(snapshot, rule.category, rule.metric)
            if value is None:
                return None

            instance.current_value = value
            instance.suppressed_until = None
            instance.suppressed_until_monotonic = None
            if evaluate(value, rule.operator, rule.threshold):
                instance.status = AlertStatus.ACTIVE
                _log.info("alert_reactivated", alert_id=alert_id, value=value)
            else:
                self._mark_resolved(instance, SYSTEM_USER, CONDITION_RESOLVED)
            await self._store.save_instance(instance)
            return instance

    def _suppression_expired(self, instance: AlertInstance) -> bool:
        if instance.suppressed_until_monotonic is not None:
            return self._clock.monotonic() >= instance.suppressed_until_monotonic
        if instance.suppressed_until is None:
            return True
        return self._clock.now() >= instance.suppressed_until

    # ------------------------------------------------------------------
    # Operator transitions
    # ------------------------------------------------------------------

    async def acknowledge_alert(self, alert_id: str, user: str) -> AlertInstance:
        async with self._locked(alert_id):
            instance = await self._load(alert_id)
            if instance.status != AlertStatus.ACTIVE:
                raise InvalidTransitionError(alert_id, instance.status.value, AlertStatus.ACKNOWLEDGED.value)
            instance.status = AlertStatus.ACKNOWLEDGED
            instance.acknowledged_by = user
            instance.acknowledged_at = self._clock.now()
            await self._store.save_instance(instance)
        _log.info("alert_acknowledged", alert_id=alert_id, user=user)
        return instance

    async def resolve_alert(self, alert_id: str, user: str, resolution: str | None = None) -> AlertInstance:
        allowed = OPEN_STATUSES | {AlertStatus.SUPPRESSED}
        instance = await self._resolve(alert_id, user, resolution or MANUALLY_RESOLVED, allowed=allowed)
        return instance

    async def suppress_alert(self, alert_id: str, user: str, duration: timedelta) -> AlertInstance:
        """Silence an active alert for *duration*.

        Raises:
            ValueError: if *duration* is not positive.
        """
        if duration <= timedelta(0):
            raise ValueError("suppression duration must be positive")
        async with self._locked(alert_id):
            instance = await self._load(alert_id)
            if instance.status != AlertStatus.ACTIVE:
                raise InvalidTransitionError(alert_id, instance.status.value, AlertStatus.SUPPRESSED.value)
            now = self._clock.now()
            instance.status = AlertStatus.SUPPRESSED
            instance.suppressed_by = user
            instance.suppressed_at = now
            instance.suppressed_until = now + duration
            instance.suppressed_until_monotonic = self._clock.monotonic() + duration.total_seconds()
            await self._store.save_instance(instance)
        _log.info("alert_suppressed", alert_id=alert_id, user=user, until=instance.suppressed_until.isoformat())
        return instance

    async def _resolve(
        self,
        alert_id: str,
        user: str,
        resolution: str,
        allowed: frozenset[AlertStatus],
    ) -> AlertInstance:
        async with self._locked(alert_id):
            instance = await self._load(alert_id)
            if instance.status not in allowed:
                raise InvalidTransitionError(alert_id, instance.status.value, AlertStatus.RESOLVED.value)
            self._mark_resolved(instance, user, resolution)
            await self._store.save_instance(instance)
        return instance

    def _mark_resolved(self, instance: AlertInstance, user: str, resolution: str) -> None:
        instance.status = AlertStatus.RESOLVED
        instance.resolved_by = user
        instance.resolved_at = self._clock.now()
        instance.resolution = resolution
        reason = CONDITION_RESOLVED if resolution == CONDITION_RESOLVED else "manual"
        alerts_resolved_total.labels(reason=reason).inc()
        _log.info("alert_resolved", alert_id=instance.alert_id, user=user, resolution=resolution)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_alert(self, alert_id: str) -> AlertInstance:
        return await self._load(alert_id)

    async def list_alerts(
        self,
        status: AlertStatus | None = None,
        rule_id: str | None = None,
        limit: int = 100,
    ) -> list[AlertInstance]:
        statuses = [status] if status is not None else None
        return await self._store.find_instances(rule_id=rule_id, statuses=statuses, limit=limit)

    async def dashboard(self) -> AlertDashboard:
        now = self._clock.now()
        active = await self._store.find_instances(statuses=OPEN_STATUSES)
        history = await self._store.find_instances(
            created_after=now - _DASHBOARD_HISTORY_WINDOW,
            limit=_DASHBOARD_HISTORY_LIMIT,
        )
        return AlertDashboard(
            generated_at=now,
            active_alerts=active,
            recent_history=history,
            by_severity=dict(Counter(i.severity.value for i in active)),
            by_category=dict(Counter(i.category.value for i in active)),
            by_status=dict(Counter(i.status.value for i in history)),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _locked(self, alert_id: str) -> AsyncIterator[None]:
        """Hold the per-alert lock; the entry is dropped when nobody holds or awaits it."""
        lock, users = self._locks.get(alert_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[alert_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._locks[alert_id]
            if users == 1:
                del self._locks[alert_id]
            else:
                self._locks[alert_id] = (lock, users - 1)

    async def _load(self, alert_id: str) -> AlertInstance:
        instance = await self._store.get_instance(alert_id)
        if instance is None:
            raise AlertNotFoundError(alert_id)
        return instance

    def _age(self, instance: AlertInstance) -> timedelta:
        return elapsed_since(self._clock, instance.created_at, instance.created_monotonic)

    def _fan_out(
        self,
        instance: AlertInstance,
        channels: Iterable[ChannelSpec],
        actions: Iterable[ActionSpec],
    ) -> None:
        """Hand notifications and auto-actions to their supervised runners."""
        notice = Notice.from_alert(replace(instance, notifications=[], actions=[]))
        for channel in channels:
            self._dispatcher.submit(notice, channel, on_outcome=self._appender(instance.alert_id, "notifications"))
        context = ActionContext.from_alert(instance)
        for action in actions:
            self._executor.submit(action, context, on_outcome=self._appender(instance.alert_id, "actions"))

    def _appender(
        self, alert_id: str, log_name: str
    ) -> Callable[[NotificationRecord | ActionRecord], Awaitable[None]]:
        async def _append(record: NotificationRecord | ActionRecord) -> None:
            async with self._locked(alert_id):
                instance = await self._store.get_instance(alert_id)
                if instance is None:
                    _log.warning("outcome_for_unknown_alert", alert_id=alert_id)
                    return
                getattr(instance, log_name).append(record)
                await self._store.save_instance(instance)

        return _append
