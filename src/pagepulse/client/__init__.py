"""Client-side emitters that report telemetry to the ingest endpoints."""

from pagepulse.client.emitters import (
    ActivityEmitter,
    EventBatcher,
    NavigationEmitter,
    TelemetryClient,
    WebVitalsEmitter,
)
from pagepulse.client.transport import BeaconTransport

__all__ = [
    "ActivityEmitter",
    "BeaconTransport",
    "EventBatcher",
    "NavigationEmitter",
    "TelemetryClient",
    "WebVitalsEmitter",
]
