"""Automated remediation actions.

Exports:
    ActionExecutor        -- Supervised, never-raising action runner.
    ActionHandler         -- Abstract base, one subclass per ActionKind.
    ControlPlane          -- Collaborator that applies commands.
    HttpControlPlane      -- JSON-over-HTTP control plane client.
    build_action_executor -- Factory used by the application bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from vigil.actions.base import ActionContext, ActionExecutor, ActionHandler, ControlPlane, HttpControlPlane
from vigil.actions.handlers import (
    RestartServiceAction,
    ScaleInstancesAction,
    SwitchProviderAction,
    ThrottleRequestsAction,
    default_handlers,
)

if TYPE_CHECKING:
    from vigil.clock import Clock
    from vigil.supervisor import TaskSupervisor

_log = structlog.get_logger(component="actions")

__all__ = [
    "ActionContext",
    "ActionExecutor",
    "ActionHandler",
    "ControlPlane",
    "HttpControlPlane",
    "RestartServiceAction",
    "ScaleInstancesAction",
    "SwitchProviderAction",
    "ThrottleRequestsAction",
    "build_action_executor",
    "default_handlers",
]


def build_action_executor(
    control_plane_url: str,
    supervisor: TaskSupervisor,
    clock: Clock | None = None,
) -> ActionExecutor:
    """Build an ActionExecutor; without a control plane URL every action is recorded as failed."""
    control_plane: ControlPlane | None = None
    if control_plane_url:
        try:
            control_plane = HttpControlPlane(base_url=control_plane_url)
            _log.info("control_plane_enabled", url=control_plane_url)
        except ValueError as exc:
            _log.warning("control_plane_disabled", reason=str(exc))
    else:
        _log.info("no_control_plane_configured")
    return ActionExecutor(
        handlers=default_handlers(),
        supervisor=supervisor,
        control_plane=control_plane,
        clock=clock,
    )
