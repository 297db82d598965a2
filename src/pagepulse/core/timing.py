"""Instrumentation wrappers that time a unit of work and emit a MetricEvent.

Each invocation owns its own start time, so wrappers can run concurrently
without locking. The emitted event is handed to the sink in the background;
the wrapped call's result or exception is returned unchanged.
"""

import asyncio
import functools
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from pagepulse.core.models import MetricKind, create_metric_event
from pagepulse.core.sink import MetricSink

logger = logging.getLogger(__name__)

T = TypeVar("T")
DEFAULT_SLOW_THRESHOLD_MS = 50.0


class Request(Protocol):
    """The parts of an HTTP request the request-timing wrapper reads."""

    method: str

    @property
    def url(self) -> Any: ...


class ColdStartDetector:
    """Reports True exactly once: for the first instrumented request."""

    def __init__(self) -> None:
        self._first_seen: float | None = None

    @property
    def first_seen(self) -> float | None:
        """Timestamp of the first invocation, None until then."""
        return self._first_seen

    def check(self) -> bool:
        if self._first_seen is None:
            self._first_seen = time.time()
            return True
        return False


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _error_text(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc!s}"


class Instrumentation:
    """Factory for request and operation timing wrappers bound to one sink.

    Args:
        sink: Where timing events are recorded.
        slow_threshold_ms: DB operations at or above this duration are
            flagged ``is_slow`` in their metadata.
    """

    def __init__(
        self,
        sink: MetricSink,
        slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS,
    ) -> None:
        self.sink = sink
        self.slow_threshold_ms = slow_threshold_ms
        self.cold_start = ColdStartDetector()

    def _emit(self, kind: MetricKind, name: str, **fields: Any) -> None:
        try:
            self.sink.record_nowait(create_metric_event(kind, name, **fields))
        except Exception:
            logger.warning("Could not record timing event %r", name, exc_info=True)

    def _emit_request(
        self,
        request: Request,
        name: str | None,
        start: float,
        metadata: dict[str, Any],
    ) -> None:
        duration_ms = _elapsed_ms(start)
        try:
            path = request.url.path
            method = request.method
        except Exception:
            logger.warning("Could not read request for timing event", exc_info=True)
            return
        self._emit(
            kind=MetricKind.API,
            name=name or f"{method} {path}",
            duration_ms=duration_ms,
            path=path,
            method=method,
            metadata=metadata,
        )

    def timed_handler(
        self, name: str | None = None
    ) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
        """Decorate an async request handler to record its latency.

        The handler receives the request as its first argument; the request
        must expose ``method`` and ``url.path``. The event is recorded as
        ``kind=api`` with ``metadata.status`` taken from the response's
        ``status_code``, or 500 if the handler raised or was cancelled.

        Args:
            name: Event name. Defaults to "<METHOD> <path>".
        """

        def decorator(handler: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            @functools.wraps(handler)
            async def wrapper(request: Request, *args: Any, **kwargs: Any) -> T:
                start = time.perf_counter()
                cold = self.cold_start.check()
                metadata: dict[str, Any] = {"status": 500, "cold_start": cold}
                try:
                    response = await handler(request, *args, **kwargs)
                    metadata["status"] = getattr(response, "status_code", 200)
                    return response
                except asyncio.CancelledError:
                    metadata["cancelled"] = True
                    raise
                except Exception as exc:
                    metadata["error"] = _error_text(exc)
                    raise
                finally:
                    self._emit_request(request, name, start, metadata)

            return wrapper

        return decorator

    async def measure(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        name: str,
        collection: str | None = None,
        path: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> T:
        """Time an async database operation and record it as ``kind=db``.

        Args:
            fn: Zero-argument coroutine function performing the operation.
            name: Operation name (e.g. "find-published-articles").
            collection: Collection or table the operation touches.
            path: Request path the operation served, if any.
            metadata: Extra side facts merged into the event metadata.

        Returns:
            Whatever ``fn`` returns. Exceptions from ``fn`` propagate.
        """
        start = time.perf_counter()
        fields: dict[str, Any] = {**(metadata or {}), "collection": collection}
        try:
            result = await fn()
        except BaseException as exc:
            fields["is_slow"] = True
            fields["error"] = _error_text(exc)
            raise
        else:
            fields["is_slow"] = _elapsed_ms(start) >= self.slow_threshold_ms
            return result
        finally:
            self._emit(
                kind=MetricKind.DB,
                name=name,
                duration_ms=_elapsed_ms(start),
                path=path,
                metadata=fields,
            )

    def measured(
        self, name: str, collection: str | None = None
    ) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
        """Decorator form of ``measure`` for async functions."""

        def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            @functools.wraps(fn)
            async def wrapper(*args: Any, **kwargs: Any) -> T:
                return await self.measure(
                    lambda: fn(*args, **kwargs), name=name, collection=collection
                )

            return wrapper

        return decorator

    async def time_async(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        name: str,
        metadata: dict[str, Any] | None = None,
    ) -> T:
        """Time any async operation and record it as ``kind=api``.

        ``metadata.status`` is "success" or "error".
        """
        start = time.perf_counter()
        fields: dict[str, Any] = {**(metadata or {}), "status": "error"}
        try:
            result = await fn()
            fields["status"] = "success"
            return result
        except BaseException as exc:
            fields["error"] = _error_text(exc)
            raise
        finally:
            self._emit(
                kind=MetricKind.API,
                name=name,
                duration_ms=_elapsed_ms(start),
                metadata=fields,
            )
