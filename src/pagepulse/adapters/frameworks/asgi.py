"""ASGI middleware that records API latency for every HTTP request.

Framework-agnostic: works with any ASGI server or framework (FastAPI,
Starlette, Django ASGI) and only depends on the MetricSink.
"""

import asyncio
import fnmatch
import logging
import time
from collections.abc import Callable, Coroutine
from typing import Any

from pagepulse.core.models import MetricKind, MetricValidationError, create_metric_event
from pagepulse.core.sink import MetricSink
from pagepulse.core.timing import ColdStartDetector

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


class ASGIMetricsMiddleware:
    """ASGI middleware that wraps an application to time its requests.

    Each HTTP request yields one ``kind=api`` MetricEvent named
    "<METHOD> <path>" with ``metadata.status`` set from the response start
    message, or 500 when the app raised or was cancelled. Exceptions are
    re-raised unchanged after the event is scheduled.
    """

    def __init__(
        self,
        app: ASGIApp,
        sink: MetricSink,
        exclude_paths: list[str] | None = None,
        cold_start: ColdStartDetector | None = None,
    ) -> None:
        """Initialize the middleware with a wrapped app and a sink.

        Args:
            app: The ASGI application to wrap.
            sink: Where request timing events are recorded.
            exclude_paths: Paths to skip. Supports exact matches and
                wildcard patterns (e.g., "/api/metrics/*").
            cold_start: Shared detector so the first request of the process
                is flagged once across all instrumentation.
        """
        self.app = app
        self.sink = sink
        self.exclude_paths = exclude_paths or []
        self.cold_start = cold_start or ColdStartDetector()

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if scope["type"] != "http" or self._path_excluded(scope["path"]):
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        metadata: dict[str, Any] = {"status": 500, "cold_start": self.cold_start.check()}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                metadata["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except asyncio.CancelledError:
            metadata["status"] = 500
            metadata["cancelled"] = True
            raise
        except Exception as e:
            metadata["status"] = 500
            metadata["error"] = f"{type(e).__name__}: {e!s}"
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            try:
                event = create_metric_event(
                    MetricKind.API,
                    f"{scope['method']} {scope['path']}",
                    duration_ms=duration_ms,
                    path=scope["path"],
                    method=scope["method"],
                    metadata=metadata,
                )
            except MetricValidationError:
                logger.warning("Skipping timing event for %r", scope["path"], exc_info=True)
            else:
                self.sink.record_nowait(event)
