"""Vigil: alerting and anomaly-detection engine for the admin back office."""

__version__ = "0.3.0"
