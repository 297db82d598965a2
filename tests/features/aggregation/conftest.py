"""BDD step definitions for dashboard aggregation features."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from pagepulse.adapters.storage.in_memory import (
    InMemoryActivityStorage,
    InMemoryMetricEventStorage,
)
from pagepulse.core.models import create_activity_event, create_metric_event
from pagepulse.core.query import DashboardResult, DashboardService
from tests.helpers import BrokenReadStorage


@dataclass
class AggregationScenarioContext:
    storage: InMemoryMetricEventStorage = field(default_factory=InMemoryMetricEventStorage)
    activity_storage: InMemoryActivityStorage = field(default_factory=InMemoryActivityStorage)
    result: DashboardResult[Any] | None = None

    @property
    def service(self) -> DashboardService:
        return DashboardService(self.storage, self.activity_storage)


def run_async(coro: Any) -> Any:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


@pytest.fixture
def ctx() -> AggregationScenarioContext:
    """Fresh scenario context for each test."""
    return AggregationScenarioContext()


@given(parsers.parse('API requests to "{path}" taking {durations} ms'))
def given_api_requests(ctx: AggregationScenarioContext, path: str, durations: str) -> None:
    for duration in durations.split(","):
        event = create_metric_event(
            "api", f"GET {path}", duration_ms=float(duration), path=path
        )
        run_async(ctx.storage.write(event))


@given(parsers.parse('a "{name}" query taking {duration:d} ms at second {second:d}'))
def given_db_query(
    ctx: AggregationScenarioContext, name: str, duration: int, second: int
) -> None:
    event = create_metric_event("db", name, duration_ms=duration, created_at=second)
    run_async(ctx.storage.write(event))


@given(parsers.parse('a navigation to "{path}"'))
def given_navigation(ctx: AggregationScenarioContext, path: str) -> None:
    event = create_metric_event("navigation", "route-change", duration_ms=50, path=path)
    run_async(ctx.storage.write(event))


@given(parsers.parse('a view ping for "{route}"'))
def given_view_ping(ctx: AggregationScenarioContext, route: str) -> None:
    run_async(ctx.activity_storage.write(create_activity_event("guest", "view", route)))


@given("the event store is unreachable")
def given_unreachable(ctx: AggregationScenarioContext) -> None:
    ctx.storage = BrokenReadStorage()


@when("the dashboard loads API latency")
def when_api_latency(ctx: AggregationScenarioContext) -> None:
    ctx.result = run_async(ctx.service.api_latency())


@when(parsers.parse("the dashboard loads database latency in {seconds:d} second buckets"))
def when_db_latency(ctx: AggregationScenarioContext, seconds: int) -> None:
    ctx.result = run_async(ctx.service.db_latency(bucket_seconds=seconds))


@when("the dashboard loads page views")
def when_page_views(ctx: AggregationScenarioContext) -> None:
    ctx.result = run_async(ctx.service.page_views())


@then(
    parsers.parse(
        '"{path}" has {count:d} requests averaging {avg:g} ms with p95 {p95:g} ms'
    )
)
def then_api_latency(
    ctx: AggregationScenarioContext, path: str, count: int, avg: float, p95: float
) -> None:
    [row] = [r for r in ctx.result.data if r.path == path]
    assert row.count == count
    assert row.avg_duration == pytest.approx(avg)
    assert row.p95_duration == pytest.approx(p95)


@then(parsers.parse('the series for "{name}" is:'))
def then_db_series(ctx: AggregationScenarioContext, name: str, datatable) -> None:
    header, *rows = datatable
    expected = [dict(zip(header, row)) for row in rows]
    actual = [p for p in ctx.result.data if p.name == name]
    assert [p.bucket for p in actual] == [row["bucket"] for row in expected]
    assert [p.avg_duration for p in actual] == [float(row["avg"]) for row in expected]


@then(parsers.parse('"{route}" has {count:d} views'))
def then_page_views(ctx: AggregationScenarioContext, route: str, count: int) -> None:
    counts = {row.route: row.count for row in ctx.result.data}
    assert counts[route] == count


@then(parsers.parse('the result is empty with error "{message}"'))
def then_empty(ctx: AggregationScenarioContext, message: str) -> None:
    assert ctx.result.data == []
    assert ctx.result.error == message
