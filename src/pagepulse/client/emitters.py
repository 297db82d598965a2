"""Client-side emitters for navigation timing, Web Vitals and page views.

Emitters build ingest payloads and hand them to an ``emit`` callable,
usually an EventBatcher in front of a BeaconTransport. They never raise
on delivery problems.
"""

import time
from collections.abc import Callable
from typing import Any

from pagepulse.client.transport import BeaconTransport

Payload = dict[str, Any]
Emit = Callable[[Payload], None]


class EventBatcher:
    """Buffers payloads and sends them as one array per endpoint.

    Args:
        transport: Delivery mechanism.
        endpoint: Ingest endpoint relative to the transport's base URL.
        max_batch: Buffer size that triggers an automatic flush.
    """

    def __init__(self, transport: BeaconTransport, endpoint: str, max_batch: int = 20) -> None:
        self.transport = transport
        self.endpoint = endpoint
        self.max_batch = max(1, max_batch)
        self._buffer: list[Payload] = []

    def __call__(self, payload: Payload) -> None:
        self._buffer.append(payload)
        if len(self._buffer) >= self.max_batch:
            self.flush()

    def __len__(self) -> int:
        return len(self._buffer)

    def flush(self) -> None:
        """Send everything buffered so far."""
        if not self._buffer:
            return
        batch, self._buffer = self._buffer, []
        self.transport.send(self.endpoint, batch)


class NavigationEmitter:
    """Times route changes until the next rendered frame.

    Call ``path_changed`` whenever the router reports a path and
    ``frame_rendered`` once the new view has painted. Repeated reports of the
    same path do not restart the timer, so re-renders never emit duplicates.

    Args:
        emit: Receives one navigation payload per distinct transition.
        clock: Monotonic clock in seconds.
    """

    def __init__(self, emit: Emit, clock: Callable[[], float] = time.perf_counter) -> None:
        self._emit = emit
        self._clock = clock
        self._last_path: str | None = None
        self._pending_path: str | None = None
        self._start: float | None = None

    def path_changed(self, path: str | None) -> bool:
        """Record a path report. Returns True if it started a new transition."""
        path = path or "/"
        if path == self._last_path:
            return False
        self._last_path = path
        self._pending_path = path
        self._start = self._clock()
        return True

    def frame_rendered(self) -> Payload | None:
        """Emit the pending transition, if any, and return its payload."""
        if self._start is None or self._pending_path is None:
            return None
        payload: Payload = {
            "type": "navigation",
            "name": "route-change",
            "duration": (self._clock() - self._start) * 1000,
            "path": self._pending_path,
        }
        self._start = None
        self._pending_path = None
        self._emit(payload)
        return payload


class WebVitalsEmitter:
    """Forwards browser-reported Web Vitals, one payload per metric."""

    def __init__(self, emit: Emit) -> None:
        self._emit = emit

    def report(
        self,
        name: str,
        value: float,
        path: str,
        id: str | None = None,
        label: str | None = None,
    ) -> Payload:
        payload: Payload = {
            "name": name,
            "value": value,
            "path": path,
            "id": id,
            "label": label,
        }
        self._emit(payload)
        return payload

    def page_loaded(self, path: str, duration_ms: float) -> Payload:
        """Report the page-load time taken from navigation timing."""
        return self.report("page-load", duration_ms, path)


class ActivityEmitter:
    """Sends a lightweight view ping for each route view."""

    def __init__(self, emit: Emit) -> None:
        self._emit = emit

    def view(self, route: str, user_id: str | None = None, role: str | None = None) -> Payload:
        payload: Payload = {
            "role": role or "guest",
            "action": "view",
            "route": route,
            "userId": user_id,
        }
        self._emit(payload)
        return payload


class TelemetryClient:
    """Wires the emitters to batched, fire-and-forget delivery.

    Example:
        ```python
        client = TelemetryClient("https://blog.example.com/api/metrics")
        client.navigation.path_changed("/articles/intro")
        client.navigation.frame_rendered()
        client.web_vitals.report("LCP", 1830.5, "/articles/intro", id="v3-1")
        client.activity.view("/articles/intro")
        await client.aclose()
        ```
    """

    def __init__(
        self,
        base_url: str,
        transport: BeaconTransport | None = None,
        max_batch: int = 20,
    ) -> None:
        self.transport = transport or BeaconTransport(base_url)
        self._batchers = {
            name: EventBatcher(self.transport, name, max_batch)
            for name in ("navigation", "web-vitals", "activity")
        }
        self.navigation = NavigationEmitter(self._batchers["navigation"])
        self.web_vitals = WebVitalsEmitter(self._batchers["web-vitals"])
        self.activity = ActivityEmitter(self._batchers["activity"])

    def flush(self) -> None:
        """Send every buffered payload."""
        for batcher in self._batchers.values():
            batcher.flush()

    async def aclose(self) -> None:
        """Flush buffers, wait for delivery and release the transport."""
        self.flush()
        await self.transport.aclose()
