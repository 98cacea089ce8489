"""Auto-action execution for Vigil.

ActionHandler  -- ABC, one implementation per ActionKind.  Validates its
                  own parameters and issues one command to the control plane.
ControlPlane   -- Collaborator that actually changes the running platform.
ActionExecutor -- Runs handlers through the TaskSupervisor and reports each
                  outcome as an ActionRecord.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from vigil.clock import Clock
from vigil.errors import ActionError
from vigil.models.alerts import ActionRecord, AlertInstance
from vigil.models.rules import ActionKind, ActionSpec
from vigil.observability.metrics import actions_total
from vigil.supervisor import TaskSupervisor

_log = structlog.get_logger(component="actions")

OutcomeCallback = Callable[[ActionRecord], Awaitable[None]]


@dataclass(frozen=True)
class ActionContext:
    """What triggered an action; forwarded to the control plane for audit."""

    alert_id: str
    rule_id: str
    metric: str
    value: float
    severity: str

    @classmethod
    def from_alert(cls, alert: AlertInstance) -> ActionContext:
        return cls(
            alert_id=alert.alert_id,
            rule_id=alert.rule_id,
            metric=alert.metric,
            value=alert.current_value,
            severity=alert.severity.value,
        )


class ControlPlane(ABC):
    """Applies commands to the platform Vigil is watching."""

    @abstractmethod
    async def execute(self, command: str, payload: dict[str, Any]) -> None:
        """Run *command*.  Raises ActionError when it was not applied."""


class HttpControlPlane(ControlPlane):
    """POSTs ``{base_url}/commands/{command}`` with a JSON body."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Control plane base_url must not be empty")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def execute(self, command: str, payload: dict[str, Any]) -> None:
        url = f"{self._base_url}/commands/{command}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise ActionError(f"control plane unreachable: {exc}") from exc
        if not response.is_success:
            raise ActionError(f"control plane returned {response.status_code}: {response.text[:200]}")


class ActionHandler(ABC):
    """One remediation kind."""

    @property
    @abstractmethod
    def kind(self) -> ActionKind:
        """Action kind this handler serves."""

    @abstractmethod
    def build_command(self, parameters: dict[str, Any], context: ActionContext) -> tuple[str, dict[str, Any]]:
        """Validate *parameters* and return ``(command, payload)``.

        Raises:
            ActionError: if the parameters are missing or out of range.
        """

    async def run(self, parameters: dict[str, Any], context: ActionContext, control_plane: ControlPlane) -> None:
        command, payload = self.build_command(parameters, context)
        payload["context"] = {
            "alert_id": context.alert_id,
            "rule_id": context.rule_id,
            "metric": context.metric,
            "value": context.value,
            "severity": context.severity,
        }
        await control_plane.execute(command, payload)


class ActionExecutor:
    """Dispatches ActionSpecs to handlers without blocking the caller.

    Handler and control plane errors never propagate; they become failed
    ActionRecords.  No retries.
    """

    def __init__(
        self,
        handlers: Iterable[ActionHandler],
        supervisor: TaskSupervisor,
        control_plane: ControlPlane | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._handlers: dict[ActionKind, ActionHandler] = {h.kind: h for h in handlers}
        self._supervisor = supervisor
        self._control_plane = control_plane
        self._clock = clock or Clock()

    def submit(self, spec: ActionSpec, context: ActionContext, on_outcome: OutcomeCallback | None = None) -> None:
        self._supervisor.spawn(
            self._run(spec, context, on_outcome),
            name=f"action-{spec.kind.value}-{context.alert_id}",
        )

    async def _run(self, spec: ActionSpec, context: ActionContext, on_outcome: OutcomeCallback | None) -> None:
        record = await self.execute_now(spec, context)
        if on_outcome is None:
            return
        try:
            await on_outcome(record)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "action_outcome_not_recorded",
                alert_id=context.alert_id,
                action_id=spec.action_id,
                error=str(exc),
            )

    async def execute_now(self, spec: ActionSpec, context: ActionContext) -> ActionRecord:
        handler = self._handlers.get(spec.kind)
        error = ""
        if handler is None:
            error = f"Unsupported action type: {spec.kind.value}"
        elif self._control_plane is None:
            error = "no control plane configured"
        else:
            try:
                await handler.run(dict(spec.parameters), context, self._control_plane)
            except ActionError as exc:
                error = str(exc)
            except Exception as exc:  # noqa: BLE001
                _log.error(
                    "action_handler_unexpected_error",
                    action_id=spec.action_id,
                    alert_id=context.alert_id,
                    error=str(exc),
                )
                error = str(exc) or type(exc).__name__
        success = not error

        actions_total.labels(action=spec.kind.value, success="true" if success else "false").inc()
        if success:
            _log.info("action_executed", action_id=spec.action_id, kind=spec.kind.value, alert_id=context.alert_id)
        else:
            _log.warning(
                "action_failed",
                action_id=spec.action_id,
                kind=spec.kind.value,
                alert_id=context.alert_id,
                error=error,
            )

        return ActionRecord(
            executed_at=self._clock.now(),
            action_id=spec.action_id,
            action_type=spec.kind,
            parameters=dict(spec.parameters),
            success=success,
            error_message=error,
        )
