"""One ActionHandler per ActionKind."""

from __future__ import annotations

from typing import Any

from vigil.actions.base import ActionContext, ActionHandler
from vigil.errors import ActionError
from vigil.models.rules import ActionKind


def _param(parameters: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if parameters.get(key) is not None:
            return parameters[key]
    return None


class SwitchProviderAction(ActionHandler):
    """Fail over to another provider.

    Either ``provider`` names the target, or ``enable_all_providers``
    (``enableAllProviders``) opens every configured fallback.  With neither,
    the control plane picks the next healthy provider.
    """

    @property
    def kind(self) -> ActionKind:
        return ActionKind.SWITCH_PROVIDER

    def build_command(self, parameters: dict[str, Any], context: ActionContext) -> tuple[str, dict[str, Any]]:
        provider = _param(parameters, "provider", "target_provider", "targetProvider")
        if provider is not None and not isinstance(provider, str):
            raise ActionError("provider must be a string")
        enable_all = bool(_param(parameters, "enable_all_providers", "enableAllProviders") or False)
        return "switch_provider", {"provider": provider, "enable_all_providers": enable_all}


class ThrottleRequestsAction(ActionHandler):
    """Admit only a fraction ``rate`` (0 < rate <= 1) of incoming requests."""

    @property
    def kind(self) -> ActionKind:
        return ActionKind.THROTTLE_REQUESTS

    def build_command(self, parameters: dict[str, Any], context: ActionContext) -> tuple[str, dict[str, Any]]:
        raw = _param(parameters, "rate")
        if raw is None:
            raise ActionError("throttle_requests requires a rate")
        try:
            rate = float(raw)
        except (TypeError, ValueError) as exc:
            raise ActionError("rate must be a number") from exc
        if not 0 < rate <= 1:
            raise ActionError(f"rate must be in (0, 1], got {rate}")
        return "throttle_requests", {"rate": rate}


class RestartServiceAction(ActionHandler):
    @property
    def kind(self) -> ActionKind:
        return ActionKind.RESTART_SERVICE

    def build_command(self, parameters: dict[str, Any], context: ActionContext) -> tuple[str, dict[str, Any]]:
        service = _param(parameters, "service", "service_name", "serviceName")
        if not service or not isinstance(service, str):
            raise ActionError("restart_service requires a service name")
        return "restart_service", {"service": service}


class ScaleInstancesAction(ActionHandler):
    """Set an entity's instance count to ``instances`` (1..1000)."""

    @property
    def kind(self) -> ActionKind:
        return ActionKind.SCALE_INSTANCES

    def build_command(self, parameters: dict[str, Any], context: ActionContext) -> tuple[str, dict[str, Any]]:
        entity = _param(parameters, "entity", "function_name", "functionName")
        if not entity or not isinstance(entity, str):
            raise ActionError("scale_instances requires an entity")
        raw = _param(parameters, "instances", "recommended_instances", "recommendedInstances")
        try:
            instances = int(raw)
        except (TypeError, ValueError) as exc:
            raise ActionError("instances must be an integer") from exc
        if not 1 <= instances <= 1000:
            raise ActionError(f"instances must be between 1 and 1000, got {instances}")
        return "scale_instances", {"entity": entity, "instances": instances}


def default_handlers() -> list[ActionHandler]:
    return [
        SwitchProviderAction(),
        ThrottleRequestsAction(),
        RestartServiceAction(),
        ScaleInstancesAction(),
    ]
