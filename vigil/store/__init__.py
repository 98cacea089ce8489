"""Persistence layer: the AlertStore interface and an in-process store."""

from vigil.store.base import ANOMALIES, SCALING_RECOMMENDATIONS, TRENDS, AlertStore
from vigil.store.memory import InMemoryAlertStore

__all__ = [
    "ANOMALIES",
    "SCALING_RECOMMENDATIONS",
    "TRENDS",
    "AlertStore",
    "InMemoryAlertStore",
]
