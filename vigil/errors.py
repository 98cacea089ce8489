"""Exception hierarchy for Vigil."""

from __future__ import annotations


class VigilError(Exception):
    """Base class for all Vigil errors."""


class ConfigError(VigilError):
    """Raised when VIGIL_* configuration cannot be parsed."""


class RuleConfigError(VigilError):
    """Raised when an alert rule definition is missing or malformed fields."""

    def __init__(self, rule_id: str, reason: str) -> None:
        super().__init__(f"Invalid alert rule '{rule_id}': {reason}")
        self.rule_id = rule_id
        self.reason = reason


class StoreError(VigilError):
    """Raised by an AlertStore when a read or write fails."""


class AlertNotFoundError(VigilError):
    """Raised when an administrative operation names an unknown alert."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert '{alert_id}' not found")
        self.alert_id = alert_id


class InvalidTransitionError(VigilError):
    """Raised when an alert status transition is not allowed."""

    def __init__(self, alert_id: str, current: str, target: str) -> None:
        super().__init__(f"Alert '{alert_id}' cannot move from {current} to {target}")
        self.alert_id = alert_id
        self.current = current
        self.target = target


class ActionError(VigilError):
    """Raised by an action handler or control plane when an action cannot run."""
