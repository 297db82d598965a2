"""Test doubles and small helpers shared across test modules."""

from pagepulse.adapters.storage.in_memory import InMemoryMetricEventStorage
from pagepulse.core.models import MetricEvent


class FailingMetricStorage(InMemoryMetricEventStorage):
    """Metric storage whose writes always fail."""

    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    async def write(self, event: MetricEvent) -> None:
        self.attempts += 1
        raise RuntimeError("storage unavailable")


class BrokenReadStorage(InMemoryMetricEventStorage):
    """Metric storage whose reads and counts fail."""

    async def read(self, *args, **kwargs):
        raise RuntimeError("store unreachable")
        yield  # pragma: no cover

    async def count(self, *args, **kwargs) -> int:
        raise RuntimeError("store unreachable")


async def collect(iterable) -> list:
    """Drain an async iterable into a list."""
    return [item async for item in iterable]
