"""Metric source collaborators.

MetricSource      -- ABC: latest snapshot plus new execution samples.
PushMetricSource  -- Holds whatever was last pushed (by the admin API).
HttpMetricSource  -- Polls a JSON endpoint with httpx.

A source that cannot produce data returns None / an empty list; a missing
snapshot means "no signal" for the pass, never an error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from vigil.clock import Clock
from vigil.models.metrics import ExecutionSample, MetricSnapshot, sample_from_dict

_log = structlog.get_logger(component="sources")

_MAX_QUEUED_SAMPLES = 10_000


class MetricSource(ABC):
    @abstractmethod
    async def fetch_snapshot(self) -> MetricSnapshot | None:
        """Latest snapshot, or None when nothing is available."""

    @abstractmethod
    async def fetch_samples(self) -> list[ExecutionSample]:
        """Execution samples received since the previous call."""


class PushMetricSource(MetricSource):
    """In-process source fed through ``push_snapshot`` and ``push_samples``."""

    def __init__(self, max_queued_samples: int = _MAX_QUEUED_SAMPLES) -> None:
        self._snapshot: MetricSnapshot | None = None
        self._samples: deque[ExecutionSample] = deque(maxlen=max_queued_samples)

    def push_snapshot(self, snapshot: MetricSnapshot) -> None:
        self._snapshot = snapshot

    def push_samples(self, samples: Iterable[ExecutionSample]) -> int:
        """Queue *samples*, dropping the oldest queued ones past the cap.

        Returns the number of samples accepted from this batch.
        """
        batch = list(samples)
        self._samples.extend(batch)
        return len(batch)

    @property
    def queued(self) -> int:
        return len(self._samples)

    async def fetch_snapshot(self) -> MetricSnapshot | None:
        return self._snapshot

    async def fetch_samples(self) -> list[ExecutionSample]:
        drained = list(self._samples)
        self._samples.clear()
        return drained


class HttpMetricSource(MetricSource):
    """Polls ``{base_url}/snapshot`` and ``{base_url}/samples``.

    The samples endpoint returns either a JSON list or ``{"samples": [...]}``.
    Malformed samples are logged and skipped.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        clock: Clock | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Metric source base_url must not be empty")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._clock = clock or Clock()
        self._transport = transport

    async def _get_json(self, path: str) -> Any:
        url = f"{self._base_url}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            _log.warning("metric_source_request_failed", url=url, error=str(exc))
        except ValueError as exc:
            _log.warning("metric_source_invalid_json", url=url, error=str(exc))
        return None

    async def fetch_snapshot(self) -> MetricSnapshot | None:
        data = await self._get_json("snapshot")
        if not isinstance(data, dict):
            return None
        try:
            return MetricSnapshot.from_dict(data, captured_at=None)
        except (TypeError, ValueError) as exc:
            _log.warning("metric_snapshot_invalid", error=str(exc))
            return None

    async def fetch_samples(self) -> list[ExecutionSample]:
        data = await self._get_json("samples")
        if isinstance(data, dict):
            data = data.get("samples")
        if not isinstance(data, list):
            return []
        now = self._clock.now()
        samples: list[ExecutionSample] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                samples.append(sample_from_dict(item, received_at=now))
            except (TypeError, ValueError) as exc:
                _log.warning("execution_sample_invalid", error=str(exc))
        return samples
