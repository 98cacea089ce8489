"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from vigil.errors import ConfigError
from vigil.models.analysis import Polarity
from vigil.models.config import (
    AnomalyConfig,
    APIConfig,
    BufferConfig,
    LogConfig,
    NotificationConfig,
    ScalingConfig,
    SchedulerConfig,
    TrendConfig,
    VigilConfig,
)
from vigil.models.rules import ChannelKind
from vigil.observability.logging import LOG_FORMATS


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"VIGIL_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    try:
        val = int(_env(key, str(default)))
    except ValueError as exc:
        raise ConfigError(f"VIGIL_{key} must be an integer") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    try:
        return float(_env(key, str(default)))
    except ValueError as exc:
        raise ConfigError(f"VIGIL_{key} must be a number") from exc


def _env_list(key: str, default: list[str]) -> list[str]:
    raw = _env(key, "")
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    if value.lower() not in LOG_FORMATS:
        raise ConfigError(f"Invalid log format: {value}. Must be one of {set(LOG_FORMATS)}")
    return value.lower()


def _validate_channel_kinds(values: list[str]) -> list[str]:
    valid = {kind.value for kind in ChannelKind}
    for value in values:
        if value not in valid:
            raise ConfigError(f"Invalid anomaly channel kind: {value}. Must be one of {valid}")
    return values


def _parse_polarity_overrides(raw: str) -> dict[str, str]:
    """Parse ``metric:polarity,metric:polarity``."""
    overrides: dict[str, str] = {}
    if not raw:
        return overrides
    valid = {p.value for p in Polarity}
    for item in raw.split(","):
        if not item.strip():
            continue
        metric, sep, polarity = item.partition(":")
        if not sep or polarity.strip() not in valid:
            raise ConfigError(f"Invalid trend polarity override: {item!r}")
        overrides[metric.strip()] = polarity.strip()
    return overrides


def load_config() -> VigilConfig:
    """Load configuration from VIGIL_* environment variables."""
    anomaly_defaults = AnomalyConfig()
    trend_defaults = TrendConfig()
    return VigilConfig(
        rules_file=_env("RULES_FILE", ""),
        control_plane_url=_env("CONTROL_PLANE_URL", ""),
        metric_source_url=_env("METRIC_SOURCE_URL", ""),
        scheduler=SchedulerConfig(
            alerts_interval=_env_int("ALERTS_INTERVAL", 60, min_val=5, max_val=3600),
            escalations_interval=_env_int("ESCALATIONS_INTERVAL", 60, min_val=5, max_val=3600),
            suppressions_interval=_env_int("SUPPRESSIONS_INTERVAL", 120, min_val=5, max_val=3600),
            analysis_interval=_env_int("ANALYSIS_INTERVAL", 60, min_val=5, max_val=3600),
        ),
        buffer=BufferConfig(
            capacity=_env_int("BUFFER_CAPACITY", 100, min_val=30, max_val=10000),
            max_age_hours=_env_int("BUFFER_MAX_AGE_HOURS", 0, min_val=0, max_val=720),
        ),
        anomaly=AnomalyConfig(
            recent_window=_env_int("ANOMALY_RECENT_WINDOW", 20, min_val=1),
            min_history=_env_int("ANOMALY_MIN_HISTORY", 10, min_val=2),
            threshold=_env_float("ANOMALY_THRESHOLD", 2.0),
            tracked_metrics=_env_list("ANOMALY_METRICS", anomaly_defaults.tracked_metrics),
        ),
        trend=TrendConfig(
            forecast_steps=_env_int("TREND_FORECAST_STEPS", 5, min_val=0, max_val=100),
            min_samples=_env_int("TREND_MIN_SAMPLES", 10, min_val=2),
            stable_band_pct=_env_float("TREND_STABLE_BAND_PCT", 5.0),
            tracked_metrics=_env_list("TREND_METRICS", trend_defaults.tracked_metrics),
            polarity_overrides=_parse_polarity_overrides(_env("TREND_POLARITY", "")),
        ),
        scaling=ScalingConfig(
            min_samples=_env_int("SCALING_MIN_SAMPLES", 20, min_val=1),
            recent_window=_env_int("SCALING_RECENT_WINDOW", 10, min_val=1),
            latency_threshold_ms=_env_float("SCALING_LATENCY_THRESHOLD_MS", 2000.0),
            concurrency_threshold=_env_float("SCALING_CONCURRENCY_THRESHOLD", 30.0),
            multiplier=_env_float("SCALING_MULTIPLIER", 1.5),
            auto_apply=_env_bool("SCALING_AUTO_APPLY", False),
            cost_ceiling=_env_float("SCALING_COST_CEILING", 100.0),
        ),
        notifications=NotificationConfig(
            slack_secret_ref=_env("NOTIFICATIONS_SLACK_SECRET_REF", ""),
            email_secret_ref=_env("NOTIFICATIONS_EMAIL_SECRET_REF", ""),
            email_to=_env("NOTIFICATIONS_EMAIL_TO", ""),
            webhook_secret_ref=_env("NOTIFICATIONS_WEBHOOK_SECRET_REF", ""),
            sms_secret_ref=_env("NOTIFICATIONS_SMS_SECRET_REF", ""),
            sms_from=_env("NOTIFICATIONS_SMS_FROM", ""),
            pager_secret_ref=_env("NOTIFICATIONS_PAGER_SECRET_REF", ""),
            anomaly_channels=_validate_channel_kinds(_env_list("NOTIFICATIONS_ANOMALY_CHANNELS", [])),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
