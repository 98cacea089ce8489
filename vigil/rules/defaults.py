"""Built-in alert rules seeded into an empty rule store."""

from __future__ import annotations

from typing import Any

from vigil.models.rules import AlertRule
from vigil.rules.loader import parse_rule

DEFAULT_RULE_DOCUMENTS: list[dict[str, Any]] = [
    {
        "ruleId": "slow_generation",
        "name": "Slow Video Generation",
        "description": "Video generation taking longer than expected",
        "type": "performance",
        "metric": "average_generation_time",
        "condition": "above",
        "threshold": 90000,  # ms
        "severity": "medium",
        "enabled": True,
        "cooldownMinutes": 15,
        "escalationRules": [
            {
                "escalationId": "slow_generation_high",
                "triggerAfterMinutes": 30,
                "severity": "high",
                "notificationChannels": [
                    {"channelId": "tech_team_slack", "type": "slack", "configuration": {}, "severity": ["high"]}
                ],
                "autoActions": [{"actionId": "switch_provider", "type": "switch_provider", "parameters": {}}],
            }
        ],
        "autoActions": [],
        "notificationChannels": [
            {"channelId": "alerts_email", "type": "email", "configuration": {}, "severity": ["medium", "high"]}
        ],
    },
    {
        "ruleId": "low_success_rate",
        "name": "Low Generation Success Rate",
        "description": "Video generation success rate below threshold",
        "type": "performance",
        "metric": "success_rate",
        "condition": "below",
        "threshold": 0.95,
        "severity": "high",
        "enabled": True,
        "cooldownMinutes": 10,
        "escalationRules": [
            {
                "escalationId": "low_success_critical",
                "triggerAfterMinutes": 20,
                "severity": "critical",
                "notificationChannels": [
                    {"channelId": "oncall_pager", "type": "pagerduty", "configuration": {}, "severity": ["critical"]}
                ],
                "autoActions": [
                    {
                        "actionId": "enable_fallback",
                        "type": "switch_provider",
                        "parameters": {"enableAllProviders": True},
                    }
                ],
            }
        ],
        "autoActions": [{"actionId": "throttle_requests", "type": "throttle_requests", "parameters": {"rate": 0.5}}],
        "notificationChannels": [
            {"channelId": "tech_team_slack", "type": "slack", "configuration": {}, "severity": ["high"]}
        ],
    },
    {
        "ruleId": "quality_degradation",
        "name": "Video Quality Degradation",
        "description": "Average video quality score below acceptable threshold",
        "type": "quality",
        "metric": "average_quality_score",
        "condition": "below",
        "threshold": 8.0,
        "severity": "medium",
        "enabled": True,
        "cooldownMinutes": 20,
        "notificationChannels": [
            {"channelId": "quality_team_email", "type": "email", "configuration": {}, "severity": ["medium"]}
        ],
    },
    {
        "ruleId": "user_satisfaction_drop",
        "name": "User Satisfaction Drop",
        "description": "User satisfaction score below acceptable level",
        "type": "quality",
        "metric": "user_satisfaction_score",
        "condition": "below",
        "threshold": 4.0,
        "severity": "medium",
        "enabled": True,
        "cooldownMinutes": 30,
        "notificationChannels": [
            {"channelId": "product_team_slack", "type": "slack", "configuration": {}, "severity": ["medium"]}
        ],
    },
    {
        "ruleId": "conversion_rate_drop",
        "name": "Conversion Rate Drop",
        "description": "Premium conversion rate below baseline",
        "type": "business",
        "metric": "premium_conversion_rate",
        "condition": "below",
        "threshold": 0.50,
        "severity": "medium",
        "enabled": True,
        "cooldownMinutes": 60,
        "notificationChannels": [
            {"channelId": "business_team_email", "type": "email", "configuration": {}, "severity": ["medium"]}
        ],
    },
]


def default_rules() -> list[AlertRule]:
    return [parse_rule(doc) for doc in DEFAULT_RULE_DOCUMENTS]
