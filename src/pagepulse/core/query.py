"""Dashboard queries over stored events.

Raw retrieval is paginated and filterable. Aggregated views delegate to
``pagepulse.core.aggregation`` and degrade to empty data when the store
fails, so dashboards show "no data" instead of crashing.
"""

import logging
import math
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pagepulse.core import aggregation
from pagepulse.core.models import (
    WEB_VITAL_KINDS,
    ActivityAction,
    ApiLatency,
    DbDurationPoint,
    MetricEvent,
    MetricKind,
    PageViewCount,
    RequestRate,
)
from pagepulse.core.ports import ActivityStoragePort, EventFilter, MetricEventStoragePort

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

T = TypeVar("T")


class QueryError(ValueError):
    """Raised for a malformed dashboard query (bad type, bad pattern)."""


def _parse_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _compile_pattern(pattern: str | None, field_name: str) -> str | None:
    if not pattern:
        return None
    try:
        re.compile(pattern)
    except re.error as exc:
        raise QueryError(f"Invalid {field_name} pattern: {exc}") from None
    return pattern


@dataclass(frozen=True)
class MetricQuery:
    """A validated page request against the raw event store.

    Attributes:
        page: 1-based page number.
        limit: Page size, at most the configured maximum.
        event_filter: Selection criteria passed to storage.
    """

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    event_filter: EventFilter = field(default_factory=EventFilter)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        page: Any = None,
        limit: Any = None,
        type: str | None = None,
        name: str | None = None,
        path: str | None = None,
        since: float | None = None,
        until: float | None = None,
        default_limit: int = DEFAULT_PAGE_SIZE,
        max_limit: int = MAX_PAGE_SIZE,
    ) -> "MetricQuery":
        """Build a query from loosely typed request parameters.

        Page defaults to 1 and is at least 1. Limit defaults to
        ``default_limit`` and is clamped to ``[1, max_limit]``. Name and path
        are case-insensitive regular expressions.

        Raises:
            QueryError: If type is unknown or a pattern does not compile.
        """
        page_number = max(1, _parse_int(page, 1))
        page_size = _parse_int(limit, default_limit) or default_limit
        page_size = min(max(1, page_size), max_limit)
        kinds: tuple[MetricKind, ...] | None = None
        if type:
            try:
                kind = MetricKind(type)
            except ValueError:
                raise QueryError(f"Unknown metric type: {type!r}") from None
            kinds = WEB_VITAL_KINDS if kind in WEB_VITAL_KINDS else (kind,)
        return cls(
            page=page_number,
            limit=page_size,
            event_filter=EventFilter(
                kinds=kinds,
                name_pattern=_compile_pattern(name, "name"),
                path_pattern=_compile_pattern(path, "path"),
                since=since,
                until=until,
            ),
        )


@dataclass(frozen=True)
class MetricPage:
    """One page of raw events, newest first."""

    metrics: list[MetricEvent]
    total: int
    page: int
    pages: int


async def query_metrics(storage: MetricEventStoragePort, query: MetricQuery) -> MetricPage:
    """Fetch one page of events matching the query, newest first."""
    total = await storage.count(query.event_filter)
    metrics = [
        event
        async for event in storage.read(
            query.event_filter,
            offset=query.offset,
            limit=query.limit,
            newest_first=True,
        )
    ]
    return MetricPage(
        metrics=metrics,
        total=total,
        page=query.page,
        pages=math.ceil(total / query.limit),
    )


@dataclass(frozen=True)
class DashboardResult(Generic[T]):
    """Aggregated data for one chart, or an error with empty data."""

    data: list[T]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DashboardService:
    """Aggregated views for the admin dashboard over a time window."""

    def __init__(
        self,
        storage: MetricEventStoragePort,
        activity_storage: ActivityStoragePort | None = None,
    ) -> None:
        self.storage = storage
        self.activity_storage = activity_storage

    async def _events(
        self, kinds: tuple[MetricKind, ...] | None, since: float | None, until: float | None
    ) -> list[MetricEvent]:
        event_filter = EventFilter(kinds=kinds, since=since, until=until)
        return [event async for event in self.storage.read(event_filter)]

    async def _guarded(
        self, label: str, compute: Callable[[], Awaitable[list[T]]]
    ) -> DashboardResult[T]:
        try:
            return DashboardResult(data=await compute())
        except Exception:
            logger.exception("Failed to aggregate %s", label)
            return DashboardResult(data=[], error=f"Failed to load {label}")

    async def api_latency(
        self, since: float | None = None, until: float | None = None
    ) -> DashboardResult[ApiLatency]:
        async def compute() -> list[ApiLatency]:
            events = await self._events((MetricKind.API,), since, until)
            return aggregation.api_latency(events)

        return await self._guarded("API latency", compute)

    async def db_latency(
        self,
        since: float | None = None,
        until: float | None = None,
        bucket_seconds: float = 60,
    ) -> DashboardResult[DbDurationPoint]:
        async def compute() -> list[DbDurationPoint]:
            events = await self._events((MetricKind.DB,), since, until)
            return aggregation.db_duration_series(events, bucket_seconds)

        return await self._guarded("DB latency", compute)

    async def page_views(
        self, since: float | None = None, until: float | None = None
    ) -> DashboardResult[PageViewCount]:
        async def compute() -> list[PageViewCount]:
            events = await self._events((MetricKind.NAVIGATION,), since, until)
            activities = []
            if self.activity_storage is not None:
                activities = [
                    a
                    async for a in self.activity_storage.read(
                        since=since, until=until, action=ActivityAction.VIEW
                    )
                ]
            return aggregation.page_view_counts(events, activities)

        return await self._guarded("page views", compute)

    async def request_rate(
        self,
        since: float | None = None,
        until: float | None = None,
        bucket_seconds: float = 60,
    ) -> DashboardResult[RequestRate]:
        async def compute() -> list[RequestRate]:
            events = await self._events(None, since, until)
            return aggregation.request_rate(events, bucket_seconds)

        return await self._guarded("request rate", compute)
