"""Application factory wiring storage, sink, instrumentation and routers.

Run with:
    uvicorn pagepulse.app:create_app --factory
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pagepulse.adapters.frameworks.asgi import ASGIMetricsMiddleware
from pagepulse.adapters.frameworks.fastapi import (
    create_dashboard_router,
    create_ingest_router,
)
from pagepulse.adapters.storage import SQLiteActivityStorage, SQLiteMetricEventStorage
from pagepulse.config import Settings, configure_logging, load_settings
from pagepulse.core.models import RetentionPolicy
from pagepulse.core.ports import ActivityStoragePort, MetricEventStoragePort
from pagepulse.core.retention import enforce_retention
from pagepulse.core.sink import MetricSink
from pagepulse.core.timing import Instrumentation

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    storage: MetricEventStoragePort | None = None,
    activity_storage: ActivityStoragePort | None = None,
) -> FastAPI:
    """Create the telemetry FastAPI application.

    The sink, instrumentation and storage objects are created once here and
    shared by every request; they are also exposed on ``app.state``.

    Args:
        settings: Runtime settings; loaded from the environment if omitted.
        storage: Metric event store; SQLite at ``settings.db_path`` if omitted.
        activity_storage: Activity store; SQLite at ``settings.db_path`` if
            omitted.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if storage is None:
        storage = SQLiteMetricEventStorage(settings.db_path)
    if activity_storage is None:
        activity_storage = SQLiteActivityStorage(settings.db_path)
    sink = MetricSink(storage, activity_storage)
    instrumentation = Instrumentation(sink, slow_threshold_ms=settings.slow_query_ms)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        policy = RetentionPolicy(max_age_seconds=settings.retention_seconds)
        try:
            await enforce_retention(storage, policy, activity_storage)
        except Exception:
            logger.exception("Retention pass failed at startup")
        yield
        await sink.drain()
        for store in (storage, activity_storage):
            close = getattr(store, "close", None)
            if close is not None:
                await close()

    app = FastAPI(title="pagepulse", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage
    app.state.activity_storage = activity_storage
    app.state.sink = sink
    app.state.instrumentation = instrumentation

    app.include_router(
        create_ingest_router(sink, instrumentation), prefix=settings.api_prefix
    )
    app.include_router(
        create_dashboard_router(
            storage,
            activity_storage,
            default_page_size=settings.default_page_size,
            max_page_size=settings.max_page_size,
        ),
        prefix=settings.api_prefix,
    )
    app.add_middleware(
        ASGIMetricsMiddleware,
        sink=sink,
        exclude_paths=settings.exclude_paths,
        cold_start=instrumentation.cold_start,
    )
    return app
