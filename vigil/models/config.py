"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SchedulerConfig:
    """Cadence of each evaluation pass, in seconds."""

    alerts_interval: int = 60
    escalations_interval: int = 60
    suppressions_interval: int = 120
    analysis_interval: int = 60


@dataclass
class BufferConfig:
    """Rolling metric buffer configuration."""

    capacity: int = 100
    max_age_hours: int = 0  # 0 disables age-based eviction


@dataclass
class AnomalyConfig:
    """Anomaly detector configuration."""

    recent_window: int = 20
    min_history: int = 10
    threshold: float = 2.0
    tracked_metrics: list[str] = field(default_factory=lambda: ["execution_time", "memory_usage", "error_rate"])


@dataclass
class TrendConfig:
    """Trend analyzer configuration."""

    forecast_steps: int = 5
    min_samples: int = 10
    stable_band_pct: float = 5.0
    tracked_metrics: list[str] = field(default_factory=lambda: ["execution_time", "error_rate", "requests_per_second"])
    # metric -> "higher_is_better" | "lower_is_better"
    polarity_overrides: dict[str, str] = field(default_factory=dict)


@dataclass
class ScalingConfig:
    """Scaling advisor and auto-scaler configuration."""

    min_samples: int = 20
    recent_window: int = 10
    latency_threshold_ms: float = 2000.0
    concurrency_threshold: float = 30.0
    multiplier: float = 1.5
    confidence: float = 0.85
    auto_apply: bool = False
    min_apply_confidence: float = 0.8
    cost_ceiling: float = 100.0


@dataclass
class NotificationConfig:
    """Notification transport configuration (secret refs are env var names)."""

    slack_secret_ref: str = ""
    email_secret_ref: str = ""
    email_to: str = ""
    webhook_secret_ref: str = ""
    sms_secret_ref: str = ""
    sms_from: str = ""
    pager_secret_ref: str = ""
    # channel kinds that receive high/critical anomaly notices
    anomaly_channels: list[str] = field(default_factory=list)


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"  # json | console


@dataclass
class VigilConfig:
    """Top-level Vigil configuration."""

    rules_file: str = ""
    control_plane_url: str = ""
    metric_source_url: str = ""
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)
    trend: TrendConfig = field(default_factory=TrendConfig)
    scaling: ScalingConfig = field(default_factory=ScalingConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
