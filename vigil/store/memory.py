"""In-process AlertStore.

Records are deep-copied on the way in and out so that callers observe the
same isolation they would get from a remote document store: mutating a
returned instance has no effect until it is saved again.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from datetime import datetime

from vigil.errors import StoreError
from vigil.models.alerts import AlertInstance, AlertStatus
from vigil.models.rules import AlertRule
from vigil.store.base import DERIVED_COLLECTIONS, AlertStore


class InMemoryAlertStore(AlertStore):
    def __init__(self, max_records_per_collection: int = 10_000) -> None:
        self._rules: dict[str, AlertRule] = {}
        self._instances: dict[str, AlertInstance] = {}
        self._records: dict[str, list[object]] = {name: [] for name in DERIVED_COLLECTIONS}
        self._max_records = max_records_per_collection

    async def list_rules(self, enabled_only: bool = False) -> list[AlertRule]:
        rules = list(self._rules.values())
        if enabled_only:
            rules = [r for r in rules if r.enabled]
        return rules

    async def get_rule(self, rule_id: str) -> AlertRule | None:
        return self._rules.get(rule_id)

    async def put_rule(self, rule: AlertRule) -> None:
        # AlertRule is frozen; no copy needed
        self._rules[rule.rule_id] = rule

    async def get_instance(self, alert_id: str) -> AlertInstance | None:
        instance = self._instances.get(alert_id)
        return copy.deepcopy(instance) if instance is not None else None

    async def save_instance(self, instance: AlertInstance) -> None:
        self._instances[instance.alert_id] = copy.deepcopy(instance)

    async def find_instances(
        self,
        rule_id: str | None = None,
        statuses: Iterable[AlertStatus] | None = None,
        created_after: datetime | None = None,
        limit: int | None = None,
    ) -> list[AlertInstance]:
        wanted = frozenset(statuses) if statuses is not None else None
        matches = [
            inst
            for inst in self._instances.values()
            if (rule_id is None or inst.rule_id == rule_id)
            and (wanted is None or inst.status in wanted)
            and (created_after is None or inst.created_at > created_after)
        ]
        matches.sort(key=lambda inst: inst.created_at, reverse=True)
        if limit is not None:
            matches = matches[:limit]
        return [copy.deepcopy(inst) for inst in matches]

    async def append_record(self, collection: str, record: object) -> None:
        if collection not in self._records:
            raise StoreError(f"Unknown collection: {collection}")
        records = self._records[collection]
        records.append(record)
        if len(records) > self._max_records:
            del records[: len(records) - self._max_records]

    async def list_records(self, collection: str, limit: int | None = None) -> list[object]:
        if collection not in self._records:
            raise StoreError(f"Unknown collection: {collection}")
        newest_first = list(reversed(self._records[collection]))
        return newest_first[:limit] if limit is not None else newest_first
