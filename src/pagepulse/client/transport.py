"""Fire-and-forget delivery of client telemetry to the ingest endpoints."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# A beacon takes (url, json payload) and returns True if the host queued it.
Beacon = Callable[[str, Any], bool]


class BeaconTransport:
    """Sends payloads without blocking the caller and ignores failures.

    Delivery first tries ``beacon``, a host-provided queue that survives
    shutdown (the equivalent of ``navigator.sendBeacon``). When there is no
    beacon or it refuses the payload, the payload is POSTed in a background
    task over a keep-alive ``httpx.AsyncClient``.

    Args:
        base_url: Ingest prefix, e.g. "https://example.com/api/metrics".
        beacon: Optional beacon callable.
        client: Optional preconfigured client; one is created lazily if omitted.
        timeout: Per-request timeout in seconds for the fallback POST.
    """

    def __init__(
        self,
        base_url: str,
        beacon: Beacon | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.beacon = beacon
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._pending: set[asyncio.Task[None]] = set()

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def send(self, endpoint: str, payload: Any) -> None:
        """Queue a payload for delivery. Never raises."""
        url = self._url(endpoint)
        if self.beacon is not None:
            try:
                if self.beacon(url, payload):
                    return
            except Exception:
                logger.debug("Beacon failed for %s", url, exc_info=True)
        try:
            task = asyncio.get_running_loop().create_task(self._post(url, payload))
        except RuntimeError:
            logger.debug("No running event loop, dropping telemetry for %s", url)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, url: str, payload: Any) -> None:
        try:
            response = await self._get_client().post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError:
            logger.debug("Telemetry delivery to %s failed", url, exc_info=True)

    async def flush(self) -> None:
        """Wait for in-flight fallback POSTs."""
        while self._pending:
            await asyncio.gather(*self._pending)

    async def aclose(self) -> None:
        """Flush and close the client if this transport created it."""
        await self.flush()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
