"""Shared test fixtures for all test modules."""

from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest

from pagepulse.adapters.storage.in_memory import (
    InMemoryActivityStorage,
    InMemoryMetricEventStorage,
)
from pagepulse.core.models import MetricEvent
from pagepulse.core.sink import MetricSink
from pagepulse.core.timing import Instrumentation
from tests.helpers import BrokenReadStorage, FailingMetricStorage, collect


@pytest.fixture
def metrics_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for metric storage tests."""
    return str(tmp_path / "metrics.db")


@pytest.fixture
def metric_storage() -> InMemoryMetricEventStorage:
    """Fixture providing an empty in-memory metric event storage."""
    return InMemoryMetricEventStorage()


@pytest.fixture
def activity_storage() -> InMemoryActivityStorage:
    """Fixture providing an empty in-memory activity storage."""
    return InMemoryActivityStorage()


@pytest.fixture
def sink(metric_storage, activity_storage) -> MetricSink:
    """Sink writing into the in-memory storages."""
    return MetricSink(metric_storage, activity_storage)


@pytest.fixture
def instrumentation(sink: MetricSink) -> Instrumentation:
    """Instrumentation bound to the in-memory sink."""
    return Instrumentation(sink)


@pytest.fixture
def failing_storage() -> FailingMetricStorage:
    return FailingMetricStorage()


@pytest.fixture
def broken_read_storage() -> BrokenReadStorage:
    return BrokenReadStorage()


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""

    def _scope(method: str = "GET", path: str = "/test") -> dict:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses


@pytest.fixture
async def read_events(metric_storage, sink) -> AsyncIterator:
    """Return a coroutine that drains pending writes then lists stored events."""

    async def _read() -> list[MetricEvent]:
        await sink.drain()
        return await collect(metric_storage.read())

    yield _read
