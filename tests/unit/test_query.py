"""Tests for dashboard queries and aggregated views."""

import pytest

from pagepulse.core.models import (
    ApiLatency,
    MetricKind,
    PageViewCount,
    create_activity_event,
    create_metric_event,
)
from pagepulse.core.query import (
    DashboardService,
    MetricQuery,
    QueryError,
    query_metrics,
)

pytestmark = [pytest.mark.core, pytest.mark.tier(1)]


class TestMetricQueryFromParams:
    def test_defaults(self) -> None:
        query = MetricQuery.from_params()
        assert query.page == 1
        assert query.limit == 50
        assert query.offset == 0
        assert query.event_filter.kinds is None

    def test_limit_is_capped(self) -> None:
        assert MetricQuery.from_params(limit="500").limit == 200

    def test_custom_cap(self) -> None:
        assert MetricQuery.from_params(limit=90, max_limit=80).limit == 80

    @pytest.mark.parametrize("limit", [None, "", "0", 0, "abc"])
    def test_missing_or_zero_limit_uses_default(self, limit) -> None:
        assert MetricQuery.from_params(limit=limit).limit == 50

    def test_negative_limit_clamps_to_one(self) -> None:
        assert MetricQuery.from_params(limit=-5).limit == 1

    @pytest.mark.parametrize("page", ["0", "-3", "x", None])
    def test_page_is_at_least_one(self, page) -> None:
        assert MetricQuery.from_params(page=page).page == 1

    def test_offset(self) -> None:
        assert MetricQuery.from_params(page=3, limit=20).offset == 40

    def test_type_filter(self) -> None:
        query = MetricQuery.from_params(type="db")
        assert query.event_filter.kinds == (MetricKind.DB,)

    @pytest.mark.parametrize("kind", ["webvital", "frontend"])
    def test_web_vital_types_match_both_kinds(self, kind) -> None:
        query = MetricQuery.from_params(type=kind)
        assert set(query.event_filter.kinds) == {MetricKind.FRONTEND, MetricKind.WEBVITAL}

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(QueryError, match="type"):
            MetricQuery.from_params(type="cpu")

    def test_invalid_pattern_rejected(self) -> None:
        with pytest.raises(QueryError, match="name"):
            MetricQuery.from_params(name="([unclosed")

    def test_query_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            MetricQuery.from_params(path="*oops")


class TestQueryMetrics:
    @pytest.fixture
    async def populated(self, metric_storage):
        for i in range(5):
            await metric_storage.write(
                create_metric_event(
                    "api", f"GET /api/articles/{i}", path=f"/api/articles/{i}", created_at=i
                )
            )
        await metric_storage.write(
            create_metric_event("db", "find-published-articles", created_at=10)
        )
        return metric_storage

    async def test_newest_first_with_pagination(self, populated) -> None:
        page = await query_metrics(populated, MetricQuery.from_params(page=2, limit=2))

        assert page.total == 6
        assert page.pages == 3
        assert page.page == 2
        assert [e.created_at for e in page.metrics] == [4, 3]

    async def test_filters_by_type(self, populated) -> None:
        page = await query_metrics(populated, MetricQuery.from_params(type="db"))
        assert [e.name for e in page.metrics] == ["find-published-articles"]
        assert page.pages == 1

    async def test_name_filter_is_case_insensitive(self, populated) -> None:
        page = await query_metrics(populated, MetricQuery.from_params(name="PUBLISHED"))
        assert page.total == 1

    async def test_path_filter_skips_events_without_path(self, populated) -> None:
        page = await query_metrics(populated, MetricQuery.from_params(path=r"articles/[0-1]$"))
        assert sorted(e.path for e in page.metrics) == ["/api/articles/0", "/api/articles/1"]

    async def test_page_past_end_is_empty(self, populated) -> None:
        page = await query_metrics(populated, MetricQuery.from_params(page=9, limit=2))
        assert page.metrics == []
        assert page.total == 6

    async def test_empty_store(self, metric_storage) -> None:
        page = await query_metrics(metric_storage, MetricQuery.from_params())
        assert (page.metrics, page.total, page.pages) == ([], 0, 0)


class TestDashboardService:
    async def test_api_latency(self, metric_storage) -> None:
        for duration in (100, 200):
            await metric_storage.write(
                create_metric_event("api", "GET /a", duration_ms=duration, path="/a")
            )
        service = DashboardService(metric_storage)

        result = await service.api_latency()

        assert result.ok
        assert result.data == [
            ApiLatency(path="/a", count=2, avg_duration=150.0, p95_duration=100)
        ]

    async def test_window_excludes_old_events(self, metric_storage) -> None:
        await metric_storage.write(create_metric_event("api", "old", duration_ms=1, created_at=10))
        await metric_storage.write(create_metric_event("api", "new", duration_ms=1, created_at=100))
        service = DashboardService(metric_storage)

        result = await service.api_latency(since=50)

        assert [r.path for r in result.data] == ["new"]

    async def test_page_views_combines_stores(self, metric_storage, activity_storage) -> None:
        await metric_storage.write(
            create_metric_event("navigation", "route-change", path="/about")
        )
        await activity_storage.write(create_activity_event("guest", "view", "/about"))
        await activity_storage.write(create_activity_event("guest", "delete", "/about"))
        service = DashboardService(metric_storage, activity_storage)

        result = await service.page_views()

        assert result.data == [PageViewCount(route="/about", count=2)]

    async def test_db_latency_and_request_rate(self, metric_storage) -> None:
        await metric_storage.write(create_metric_event("db", "q", duration_ms=4, created_at=0))
        await metric_storage.write(create_metric_event("api", "r", duration_ms=4, created_at=1))
        service = DashboardService(metric_storage)

        db_points = await service.db_latency(bucket_seconds=60)
        rate = await service.request_rate(bucket_seconds=60)

        assert [p.name for p in db_points.data] == ["q"]
        assert [r.count for r in rate.data] == [2]

    @pytest.mark.parametrize(
        "view", ["api_latency", "db_latency", "page_views", "request_rate"]
    )
    async def test_store_failure_degrades_to_empty(
        self, broken_read_storage, view, caplog: pytest.LogCaptureFixture
    ) -> None:
        service = DashboardService(broken_read_storage)

        result = await getattr(service, view)()

        assert result.data == []
        assert result.error is not None
        assert result.error.startswith("Failed to load")
        assert not result.ok
        assert "Failed to aggregate" in caplog.text
