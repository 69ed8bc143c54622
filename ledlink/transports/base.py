"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from ledlink.core.model import DetectedDevice, DeviceHandle, DiscoveredEndpoint, TransportEvent

EventCallback = Callable[[TransportEvent], None]


class Transport(Protocol):
    """Event-driven link to a single display.

    ``open`` and ``discover`` return immediately; their outcome is delivered
    later through the ``on_event`` callback given to ``open``, possibly from
    another thread.
    """

    def open(self, address: str, on_event: EventCallback) -> DeviceHandle:
        """Start connecting and return the handle for the new session."""

    def discover(self, handle: DeviceHandle) -> None:
        """Request the service list; answered by a SERVICES_DISCOVERED event."""

    def write(self, handle: DeviceHandle, endpoint: DiscoveredEndpoint, payload: bytes) -> None:
        """Write payload to the endpoint feature, raising TransportError on failure."""

    def close(self, handle: DeviceHandle) -> None:
        """Tear down the session. Closing an unknown handle is a no-op."""

    def scan(self, timeout_s: float = 5.0) -> list[DetectedDevice]:
        """Return advertising devices seen within timeout_s."""
