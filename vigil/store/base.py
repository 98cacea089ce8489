"""Persistence collaborator interface.

Three logical collections: alert rules (keyed by rule id), alert instances
(keyed by alert id, queryable by rule id, status and creation time) and
append-only derived-record collections (anomalies, trends, scaling
recommendations).  Implementations raise StoreError on I/O failure; the
engine decides how to degrade.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from vigil.models.alerts import AlertInstance, AlertStatus
from vigil.models.rules import AlertRule

ANOMALIES = "anomalies"
TRENDS = "trends"
SCALING_RECOMMENDATIONS = "scaling_recommendations"
DERIVED_COLLECTIONS = frozenset({ANOMALIES, TRENDS, SCALING_RECOMMENDATIONS})


class AlertStore(ABC):
    """Abstract document store used by the lifecycle manager and monitor."""

    # -- rules ----------------------------------------------------------

    @abstractmethod
    async def list_rules(self, enabled_only: bool = False) -> list[AlertRule]:
        """Return stored rules, optionally only the enabled ones."""

    @abstractmethod
    async def get_rule(self, rule_id: str) -> AlertRule | None:
        """Return one rule or None."""

    @abstractmethod
    async def put_rule(self, rule: AlertRule) -> None:
        """Insert or replace a rule."""

    # -- instances ------------------------------------------------------

    @abstractmethod
    async def get_instance(self, alert_id: str) -> AlertInstance | None:
        """Return one alert instance or None."""

    @abstractmethod
    async def save_instance(self, instance: AlertInstance) -> None:
        """Insert or replace an alert instance."""

    @abstractmethod
    async def find_instances(
        self,
        rule_id: str | None = None,
        statuses: Iterable[AlertStatus] | None = None,
        created_after: datetime | None = None,
        limit: int | None = None,
    ) -> list[AlertInstance]:
        """Query instances, newest first."""

    # -- derived records ------------------------------------------------

    @abstractmethod
    async def append_record(self, collection: str, record: object) -> None:
        """Append a derived record to an append-only collection."""

    @abstractmethod
    async def list_records(self, collection: str, limit: int | None = None) -> list[object]:
        """Return derived records, newest first."""
