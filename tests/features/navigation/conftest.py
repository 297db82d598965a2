"""BDD step definitions for navigation timing features."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from pytest_bdd import given, parsers, then, when

from pagepulse.adapters.storage.in_memory import (
    InMemoryActivityStorage,
    InMemoryMetricEventStorage,
)
from pagepulse.app import create_app
from pagepulse.client.emitters import NavigationEmitter
from pagepulse.config import Settings
from pagepulse.core.models import MetricKind
from tests.helpers import collect


@dataclass
class NavigationScenarioContext:
    now: float = 0.0
    emitted: list[dict[str, Any]] = field(default_factory=list)
    emitter: NavigationEmitter | None = None
    storage: InMemoryMetricEventStorage = field(default_factory=InMemoryMetricEventStorage)
    status_code: int | None = None


def run_async(coro: Any) -> Any:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


@pytest.fixture
def ctx() -> NavigationScenarioContext:
    """Fresh scenario context for each test."""
    return NavigationScenarioContext()


@given("a navigation emitter with a manual clock")
def given_emitter(ctx: NavigationScenarioContext) -> None:
    ctx.emitter = NavigationEmitter(ctx.emitted.append, clock=lambda: ctx.now)


@when(parsers.parse('the router reports path "{path}"'))
def when_path_reported(ctx: NavigationScenarioContext, path: str) -> None:
    ctx.emitter.path_changed(path)


@when(parsers.parse("{ms:d} milliseconds pass"))
def when_time_passes(ctx: NavigationScenarioContext, ms: int) -> None:
    ctx.now += ms / 1000


@when("a frame is rendered")
def when_frame_rendered(ctx: NavigationScenarioContext) -> None:
    ctx.emitter.frame_rendered()


@when("the emitted events are posted to the navigation endpoint")
def when_posted(ctx: NavigationScenarioContext) -> None:
    app = create_app(
        Settings(retention_days=0), ctx.storage, InMemoryActivityStorage()
    )

    async def post() -> int:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/api/metrics/navigation", json=ctx.emitted)
        await app.state.sink.drain()
        return response.status_code

    ctx.status_code = run_async(post())


@then(parsers.re(r"(?P<count>\d+) navigation events? (is|are) emitted"))
def then_event_count(ctx: NavigationScenarioContext, count: str) -> None:
    assert len(ctx.emitted) == int(count)


@then(parsers.parse('the last navigation event has path "{path}"'))
def then_last_path(ctx: NavigationScenarioContext, path: str) -> None:
    assert ctx.emitted[-1]["path"] == path


@then(parsers.parse("the last navigation event took {ms:d} milliseconds"))
def then_last_duration(ctx: NavigationScenarioContext, ms: int) -> None:
    assert ctx.emitted[-1]["duration"] == pytest.approx(ms)


@then(parsers.parse("the endpoint responds with status {status:d}"))
def then_status(ctx: NavigationScenarioContext, status: int) -> None:
    assert ctx.status_code == status


@then(parsers.parse('the store holds {count:d} navigation event for path "{path}"'))
def then_stored(ctx: NavigationScenarioContext, count: int, path: str) -> None:
    events = run_async(collect(ctx.storage.read()))
    navigation = [e for e in events if e.kind is MetricKind.NAVIGATION]
    assert [e.path for e in navigation] == [path] * count
