"""Telemetry ingestion and aggregation for a publishing web application."""

from pagepulse.adapters.frameworks.asgi import ASGIMetricsMiddleware
from pagepulse.adapters.storage import (
    InMemoryActivityStorage,
    InMemoryMetricEventStorage,
    SQLiteActivityStorage,
    SQLiteMetricEventStorage,
)
from pagepulse.core.models import (
    ActivityAction,
    ActivityEvent,
    ActivityRole,
    MetricEvent,
    MetricKind,
    MetricValidationError,
    RetentionPolicy,
    create_activity_event,
    create_metric_event,
)
from pagepulse.core.query import DashboardService, MetricQuery, QueryError, query_metrics
from pagepulse.core.sink import MetricSink
from pagepulse.core.timing import Instrumentation

__all__ = [
    "ASGIMetricsMiddleware",
    "ActivityAction",
    "ActivityEvent",
    "ActivityRole",
    "DashboardService",
    "InMemoryActivityStorage",
    "InMemoryMetricEventStorage",
    "Instrumentation",
    "MetricEvent",
    "MetricKind",
    "MetricQuery",
    "MetricSink",
    "MetricValidationError",
    "QueryError",
    "RetentionPolicy",
    "SQLiteActivityStorage",
    "SQLiteMetricEventStorage",
    "create_activity_event",
    "create_metric_event",
    "query_metrics",
]
