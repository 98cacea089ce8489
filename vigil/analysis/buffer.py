"""Rolling per-(entity, metric) sample buffers.

Buffers are process-local and are not persisted; only the records derived
from them are.  Each buffer is a bounded deque, so appending is O(1) and the
oldest sample is evicted first once capacity is reached.  An optional
maximum age additionally evicts samples older than ``newest - max_age``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from datetime import timedelta

from vigil.models.metrics import ExecutionSample, MetricSample


class RollingBuffer:
    """FIFO of MetricSamples for one (entity, metric) pair."""

    def __init__(self, capacity: int = 100, max_age: timedelta | None = None) -> None:
        if capacity < 1:
            raise ValueError("buffer capacity must be at least 1")
        self._samples: deque[MetricSample] = deque(maxlen=capacity)
        self._max_age = max_age

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def append(self, sample: MetricSample) -> None:
        self._samples.append(sample)
        if self._max_age is not None:
            cutoff = sample.timestamp - self._max_age
            while self._samples and self._samples[0].timestamp < cutoff:
                self._samples.popleft()

    def samples(self) -> list[MetricSample]:
        return list(self._samples)

    def values(self) -> list[float]:
        return [s.value for s in self._samples]

    def latest(self) -> MetricSample | None:
        return self._samples[-1] if self._samples else None


class MetricBufferRegistry:
    """All rolling buffers of one monitor, keyed by (entity, metric)."""

    def __init__(self, capacity: int = 100, max_age: timedelta | None = None) -> None:
        self._capacity = capacity
        self._max_age = max_age
        self._buffers: dict[tuple[str, str], RollingBuffer] = {}

    def append(self, sample: MetricSample) -> None:
        key = (sample.entity, sample.metric)
        buffer = self._buffers.get(key)
        if buffer is None:
            buffer = RollingBuffer(self._capacity, self._max_age)
            self._buffers[key] = buffer
        buffer.append(sample)

    def ingest(self, sample: ExecutionSample) -> None:
        """Fan one execution sample out into a buffer per metric kind."""
        for metric, value in sample.values().items():
            self.append(MetricSample(sample.function_name, metric, sample.timestamp, value))

    def ingest_many(self, samples: Iterable[ExecutionSample]) -> int:
        count = 0
        for sample in samples:
            self.ingest(sample)
            count += 1
        return count

    def get(self, entity: str, metric: str) -> list[MetricSample]:
        buffer = self._buffers.get((entity, metric))
        return buffer.samples() if buffer is not None else []

    def values(self, entity: str, metric: str) -> list[float]:
        buffer = self._buffers.get((entity, metric))
        return buffer.values() if buffer is not None else []

    def size(self, entity: str, metric: str) -> int:
        buffer = self._buffers.get((entity, metric))
        return len(buffer) if buffer is not None else 0

    def entities(self) -> list[str]:
        return sorted({entity for entity, _ in self._buffers})

    def series(self, entity: str) -> dict[str, list[float]]:
        """Every metric buffered for *entity*, as plain value lists."""
        return {metric: buf.values() for (ent, metric), buf in self._buffers.items() if ent == entity}

    def latest(self, entity: str) -> dict[str, float]:
        out: dict[str, float] = {}
        for (ent, metric), buf in self._buffers.items():
            sample = buf.latest()
            if ent == entity and sample is not None:
                out[metric] = sample.value
        return out

    def clear(self) -> None:
        self._buffers.clear()
