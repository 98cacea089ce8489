"""Parse alert rule documents into AlertRule objects.

Accepts both the document shape written by the admin back office
(``ruleId``, ``type``, ``condition``, ``cooldownMinutes``,
``escalationRules`` ...) and the snake_case shape used by the REST API and
rules files.  A malformed rule raises RuleConfigError; ``parse_rules`` logs
and skips such rules so one bad document never disables the others.
"""

from __future__ import annotations

import json
import math
from datetime import timedelta
from pathlib import Path
from typing import Any

import structlog

from vigil.errors import RuleConfigError
from vigil.models.rules import (
    ActionKind,
    ActionSpec,
    AlertRule,
    ChannelKind,
    ChannelSpec,
    EscalationStep,
    MetricCategory,
    Operator,
    Severity,
)

_log = structlog.get_logger(component="rules.loader")

_CHANNEL_ALIASES = {"pagerduty": ChannelKind.PAGER.value}


def _first(doc: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in doc and doc[key] is not None:
            return doc[key]
    return default


def _flag(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.lower() in ("true", "1", "yes")
    return bool(raw)


def _enum(rule_id: str, enum_cls: type, raw: Any, field_name: str) -> Any:
    try:
        return enum_cls(str(raw).lower())
    except ValueError as exc:
        raise RuleConfigError(rule_id, f"unknown {field_name} {raw!r}") from exc


def _list(rule_id: str, raw: Any, label: str) -> list[Any]:
    if not isinstance(raw, list):
        raise RuleConfigError(rule_id, f"{label} must be a list")
    return raw


def _minutes(rule_id: str, raw: Any, field_name: str) -> timedelta:
    try:
        minutes = float(raw)
    except (TypeError, ValueError) as exc:
        raise RuleConfigError(rule_id, f"{field_name} must be a number of minutes") from exc
    if not math.isfinite(minutes):
        raise RuleConfigError(rule_id, f"{field_name} must be finite")
    if minutes < 0:
        raise RuleConfigError(rule_id, f"{field_name} must not be negative")
    try:
        return timedelta(minutes=minutes)
    except OverflowError as exc:
        raise RuleConfigError(rule_id, f"{field_name} is out of range") from exc


def parse_channel(rule_id: str, doc: dict[str, Any]) -> ChannelSpec:
    if not isinstance(doc, dict):
        raise RuleConfigError(rule_id, "notification channel must be an object")
    raw_kind = str(_first(doc, "kind", "type", default="")).lower()
    kind = _enum(rule_id, ChannelKind, _CHANNEL_ALIASES.get(raw_kind, raw_kind), "channel kind")
    raw_severities = _first(doc, "severities", "severity", default=[])
    if isinstance(raw_severities, str):
        raw_severities = [raw_severities]
    if not isinstance(raw_severities, list):
        raise RuleConfigError(rule_id, "channel severities must be a string or a list")
    severities = frozenset(_enum(rule_id, Severity, s, "channel severity") for s in raw_severities)
    configuration = _first(doc, "configuration", default={})
    if not isinstance(configuration, dict):
        raise RuleConfigError(rule_id, "channel configuration must be an object")
    return ChannelSpec(
        channel_id=str(_first(doc, "channel_id", "channelId", default=kind.value)),
        kind=kind,
        configuration=dict(configuration),
        severities=severities,
    )


def parse_action(rule_id: str, doc: dict[str, Any]) -> ActionSpec:
    if not isinstance(doc, dict):
        raise RuleConfigError(rule_id, "auto action must be an object")
    kind = _enum(rule_id, ActionKind, _first(doc, "kind", "type", default=""), "action kind")
    parameters = _first(doc, "parameters", default={})
    if not isinstance(parameters, dict):
        raise RuleConfigError(rule_id, "action parameters must be an object")
    return ActionSpec(
        action_id=str(_first(doc, "action_id", "actionId", default=kind.value)),
        kind=kind,
        parameters=dict(parameters),
    )


def parse_escalation(rule_id: str, index: int, doc: dict[str, Any]) -> EscalationStep:
    if not isinstance(doc, dict):
        raise RuleConfigError(rule_id, "escalation step must be an object")
    raw_delay = _first(doc, "trigger_after_minutes", "triggerAfterMinutes")
    if raw_delay is None:
        raise RuleConfigError(rule_id, f"escalation step {index} is missing triggerAfterMinutes")
    channels = _list(
        rule_id,
        _first(doc, "notification_channels", "notificationChannels", default=[]),
        f"escalation step {index} notification channels",
    )
    actions = _list(
        rule_id,
        _first(doc, "auto_actions", "autoActions", default=[]),
        f"escalation step {index} auto actions",
    )
    return EscalationStep(
        step_id=str(_first(doc, "step_id", "escalationId", default=f"{rule_id}_step_{index + 1}")),
        trigger_after=_minutes(rule_id, raw_delay, "triggerAfterMinutes"),
        severity=_enum(rule_id, Severity, _first(doc, "severity", default=""), "severity"),
        notification_channels=tuple(parse_channel(rule_id, c) for c in channels),
        auto_actions=tuple(parse_action(rule_id, a) for a in actions),
    )


def parse_rule(doc: dict[str, Any]) -> AlertRule:
    """Build an AlertRule from one rule document.

    Raises:
        RuleConfigError: if a required field is missing or malformed.
    """
    if not isinstance(doc, dict):
        raise RuleConfigError("<unknown>", "rule document must be an object")
    rule_id = str(_first(doc, "rule_id", "ruleId", "id", default=""))
    if not rule_id:
        raise RuleConfigError("<unknown>", "missing rule id")

    metric = _first(doc, "metric")
    if not metric:
        raise RuleConfigError(rule_id, "missing metric")
    raw_threshold = _first(doc, "threshold")
    try:
        threshold = float(raw_threshold)
    except (TypeError, ValueError) as exc:
        raise RuleConfigError(rule_id, "threshold must be a number") from exc

    steps = _list(rule_id, _first(doc, "escalation_steps", "escalationRules", default=[]), "escalation steps")
    channels = _list(
        rule_id, _first(doc, "notification_channels", "notificationChannels", default=[]), "notification channels"
    )
    actions = _list(rule_id, _first(doc, "auto_actions", "autoActions", default=[]), "auto actions")

    return AlertRule(
        rule_id=rule_id,
        name=str(_first(doc, "name", default=rule_id)),
        description=str(_first(doc, "description", default="")),
        metric=str(metric),
        category=_enum(rule_id, MetricCategory, _first(doc, "category", "type", default=""), "category"),
        operator=_enum(rule_id, Operator, _first(doc, "operator", "condition", default=""), "operator"),
        threshold=threshold,
        severity=_enum(rule_id, Severity, _first(doc, "severity", default=""), "severity"),
        enabled=_flag(_first(doc, "enabled", default=True)),
        cooldown=_minutes(rule_id, _first(doc, "cooldown_minutes", "cooldownMinutes", default=0), "cooldownMinutes"),
        escalation_steps=tuple(parse_escalation(rule_id, i, s) for i, s in enumerate(steps)),
        notification_channels=tuple(parse_channel(rule_id, c) for c in channels),
        auto_actions=tuple(parse_action(rule_id, a) for a in actions),
    )


def parse_rules(docs: list[dict[str, Any]]) -> tuple[list[AlertRule], list[RuleConfigError]]:
    """Parse many rule documents, skipping and reporting the malformed ones."""
    rules: list[AlertRule] = []
    errors: list[RuleConfigError] = []
    for doc in docs:
        try:
            rules.append(parse_rule(doc))
        except RuleConfigError as exc:
            _log.warning("rule_config_invalid", rule_id=exc.rule_id, reason=exc.reason)
            errors.append(exc)
    return rules, errors


def load_rules_file(path: str | Path) -> tuple[list[AlertRule], list[RuleConfigError]]:
    """Read a JSON rules file: either a list of rules or ``{"rules": [...]}``."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    docs = raw.get("rules", []) if isinstance(raw, dict) else raw
    if not isinstance(docs, list):
        raise RuleConfigError("<file>", f"{path} does not contain a list of rules")
    return parse_rules(docs)


def rule_to_dict(rule: AlertRule) -> dict[str, Any]:
    """Serialise a rule back to the snake_case document shape."""

    def _channel(c: ChannelSpec) -> dict[str, Any]:
        return {
            "channel_id": c.channel_id,
            "kind": c.kind.value,
            "configuration": dict(c.configuration),
            "severities": sorted(s.value for s in c.severities),
        }

    def _action(a: ActionSpec) -> dict[str, Any]:
        return {"action_id": a.action_id, "kind": a.kind.value, "parameters": dict(a.parameters)}

    return {
        "rule_id": rule.rule_id,
        "name": rule.name,
        "description": rule.description,
        "metric": rule.metric,
        "category": rule.category.value,
        "operator": rule.operator.value,
        "threshold": rule.threshold,
        "severity": rule.severity.value,
        "enabled": rule.enabled,
        "cooldown_minutes": rule.cooldown.total_seconds() / 60,
        "escalation_steps": [
            {
                "step_id": s.step_id,
                "trigger_after_minutes": s.trigger_after.total_seconds() / 60,
                "severity": s.severity.value,
                "notification_channels": [_channel(c) for c in s.notification_channels],
                "auto_actions": [_action(a) for a in s.auto_actions],
            }
            for s in rule.escalation_steps
        ],
        "notification_channels": [_channel(c) for c in rule.notification_channels],
        "auto_actions": [_action(a) for a in rule.auto_actions],
    }
