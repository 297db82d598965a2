"""FastAPI adapter for ingestion and dashboard endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from pagepulse.adapters.frameworks.query_params import (
    _parse_bucket_param,
    _parse_timestamp_param,
)
from pagepulse.core.encoding import (
    encode_event,
    encode_ndjson,
    encode_summary,
)
from pagepulse.core.models import (
    MetricKind,
    create_activity_event,
    create_metric_event,
)
from pagepulse.core.ports import ActivityStoragePort, EventFilter, MetricEventStoragePort
from pagepulse.core.query import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    DashboardResult,
    DashboardService,
    MetricQuery,
    QueryError,
    query_metrics,
)
from pagepulse.core.sink import MetricSink
from pagepulse.core.timing import Instrumentation

logger = logging.getLogger(__name__)


class ActivityPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: str
    action: str
    route: str
    user_id: str | None = Field(default=None, alias="userId")
    user_agent: str | None = Field(default=None, alias="userAgent")
    metadata: dict[str, Any] | None = None


class WebVitalPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    name: str
    value: float
    path: str | None = None
    id: str | None = None
    label: str | None = None
    type: str | None = None


class MetricPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    type: str = MetricKind.API.value
    name: str
    duration: float | None = None
    path: str | None = None
    method: str | None = None
    metadata: dict[str, Any] | None = None


_activity_adapter = TypeAdapter(ActivityPayload)
_web_vital_adapter = TypeAdapter(WebVitalPayload)
_metric_adapter = TypeAdapter(MetricPayload)


async def _read_items(request: Request, adapter: TypeAdapter[Any]) -> list[Any]:
    """Parse a JSON body holding one object or an array of objects.

    Raises:
        ValueError: If the body is not JSON or an item fails validation.
    """
    body = await request.json()
    items = body if isinstance(body, list) else [body]
    return [adapter.validate_python(item) for item in items]


def _rejected(message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=400)


def _accepted() -> JSONResponse:
    return JSONResponse({"success": True}, status_code=201)


def create_ingest_router(sink: MetricSink, instrumentation: Instrumentation) -> APIRouter:
    """Create a router with the best-effort ingestion endpoints.

    Every endpoint accepts a single object or an array. A malformed payload
    is rejected with 400; storage failures are swallowed by the sink and the
    caller still gets 201.

    Args:
        sink: Where ingested events are recorded.
        instrumentation: Used to time the ingest handlers themselves.

    Returns:
        APIRouter with /activity, /web-vitals, /metric and /navigation.
    """
    router = APIRouter()

    @router.post("/activity")
    @instrumentation.timed_handler("metrics-activity-post")
    async def ingest_activity(request: Request) -> JSONResponse:
        try:
            payloads = await _read_items(request, _activity_adapter)
            client_ip = request.client.host if request.client else "0.0.0.0"
            events = [
                create_activity_event(
                    p.role,
                    p.action,
                    p.route,
                    user_id=p.user_id,
                    ip=client_ip,
                    user_agent=p.user_agent or request.headers.get("user-agent", ""),
                    metadata=p.metadata,
                )
                for p in payloads
            ]
        except ValueError:
            return _rejected("Failed to record activity")
        await sink.record_activity_batch(events)
        return _accepted()

    @router.post("/web-vitals")
    @instrumentation.timed_handler("metrics-web-vitals-post")
    async def ingest_web_vitals(request: Request) -> JSONResponse:
        try:
            payloads = await _read_items(request, _web_vital_adapter)
            events = [
                create_metric_event(
                    p.type or MetricKind.WEBVITAL,
                    p.name,
                    duration_ms=p.value,
                    path=p.path,
                    metadata={"id": p.id, "label": p.label, "source": "web-vitals"},
                )
                for p in payloads
            ]
        except ValueError:
            return _rejected("Failed to ingest web vitals")
        await sink.record_batch(events)
        return _accepted()

    @router.post("/metric")
    @instrumentation.timed_handler("metrics-generic-post")
    async def ingest_metric(request: Request) -> JSONResponse:
        try:
            payloads = await _read_items(request, _metric_adapter)
            events = [
                create_metric_event(
                    p.type,
                    p.name,
                    duration_ms=p.duration,
                    path=p.path,
                    method=p.method,
                    metadata=p.metadata,
                )
                for p in payloads
            ]
        except ValueError:
            return _rejected("Failed to ingest metric")
        await sink.record_batch(events)
        return _accepted()

    @router.post("/navigation")
    @instrumentation.timed_handler("metrics-navigation-post")
    async def ingest_navigation(request: Request) -> JSONResponse:
        try:
            payloads = await _read_items(request, _metric_adapter)
            events = [
                create_metric_event(
                    MetricKind.NAVIGATION,
                    p.name,
                    duration_ms=p.duration,
                    path=p.path,
                    metadata=p.metadata,
                )
                for p in payloads
            ]
        except ValueError:
            return _rejected("Failed to ingest navigation metric")
        await sink.record_batch(events)
        return _accepted()

    return router


def _summary_response(result: DashboardResult[Any]) -> JSONResponse:
    return JSONResponse(
        {"data": [encode_summary(item) for item in result.data], "error": result.error},
        status_code=200 if result.ok else 500,
    )


def _empty_page(error: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"error": error, "metrics": [], "total": 0, "page": 1, "pages": 0},
        status_code=status_code,
    )


def create_dashboard_router(
    storage: MetricEventStoragePort,
    activity_storage: ActivityStoragePort | None = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
) -> APIRouter:
    """Create a router with the dashboard query endpoints.

    Args:
        storage: Metric event store to query.
        activity_storage: Activity store used for page-view counts.
        default_page_size: Page size when the caller gives none.
        max_page_size: Upper bound applied to the caller's limit.

    Returns:
        APIRouter with /all, /api-latency, /db-latency, /page-views,
        /request-rate and /export.
    """
    router = APIRouter()
    dashboard = DashboardService(storage, activity_storage)

    @router.get("/all")
    async def list_metrics(
        page: str | None = Query(default=None),
        limit: str | None = Query(default=None),
        type: str | None = Query(default=None),
        name: str | None = Query(default=None),
        path: str | None = Query(default=None),
        since: str | None = Query(default=None),
        until: str | None = Query(default=None),
    ) -> JSONResponse:
        """Return one page of raw events, newest first.

        Args:
            limit: Page size, clamped to the configured maximum.
            name: Case-insensitive regular expression on the event name.
            path: Case-insensitive regular expression on the event path.
        """
        try:
            query = MetricQuery.from_params(
                page=page,
                limit=limit,
                type=type,
                name=name,
                path=path,
                since=_parse_timestamp_param(since),
                until=_parse_timestamp_param(until),
                default_limit=default_page_size,
                max_limit=max_page_size,
            )
        except QueryError as exc:
            return _empty_page(str(exc), 400)
        try:
            result = await query_metrics(storage, query)
        except Exception:
            logger.exception("Failed to query metrics")
            return _empty_page("Failed to load metrics", 500)
        return JSONResponse(
            {
                "metrics": [encode_event(event) for event in result.metrics],
                "total": result.total,
                "page": result.page,
                "pages": result.pages,
                "limit": query.limit,
            }
        )

    @router.get("/api-latency")
    async def api_latency(
        since: str | None = Query(default=None),
        until: str | None = Query(default=None),
    ) -> JSONResponse:
        result = await dashboard.api_latency(
            _parse_timestamp_param(since), _parse_timestamp_param(until)
        )
        return _summary_response(result)

    @router.get("/db-latency")
    async def db_latency(
        since: str | None = Query(default=None),
        until: str | None = Query(default=None),
        bucket: str | None = Query(default=None),
    ) -> JSONResponse:
        result = await dashboard.db_latency(
            _parse_timestamp_param(since),
            _parse_timestamp_param(until),
            _parse_bucket_param(bucket),
        )
        return _summary_response(result)

    @router.get("/page-views")
    async def page_views(
        since: str | None = Query(default=None),
        until: str | None = Query(default=None),
    ) -> JSONResponse:
        result = await dashboard.page_views(
            _parse_timestamp_param(since), _parse_timestamp_param(until)
        )
        return _summary_response(result)

    @router.get("/request-rate")
    async def request_rate(
        since: str | None = Query(default=None),
        until: str | None = Query(default=None),
        bucket: str | None = Query(default=None),
    ) -> JSONResponse:
        result = await dashboard.request_rate(
            _parse_timestamp_param(since),
            _parse_timestamp_param(until),
            _parse_bucket_param(bucket),
        )
        return _summary_response(result)

    @router.get("/export")
    async def export_metrics(since: str | None = Query(default=None)) -> Response:
        """Return raw events in NDJSON format, oldest first."""
        event_filter = EventFilter(since=_parse_timestamp_param(since))
        try:
            body = await encode_ndjson(storage.read(event_filter))
        except Exception:
            logger.exception("Error encoding metrics export")
            return JSONResponse({"error": "Internal Server Error"}, status_code=500)
        return Response(content=body, media_type="application/x-ndjson")

    return router
