from __future__ import annotations

import itertools
import threading

import pytest

from ledlink.core.errors import WriteRejectedError
from ledlink.core.model import (
    DetectedDevice,
    DeviceHandle,
    DiscoveredEndpoint,
    FeatureDescriptor,
    LinkEvent,
    ServiceDescriptor,
    TransportEvent,
)

PANEL_SERVICES = (
    ServiceDescriptor(id="fa00", features=(FeatureDescriptor(id="fa02", properties=("write",)),)),
    ServiceDescriptor(id="1800", features=()),
)


class FakeTransport:
    """Scriptable transport. Events fire inline unless event_delay_s is set."""

    def __init__(
        self,
        *,
        services: tuple[ServiceDescriptor, ...] = PANEL_SERVICES,
        auto_connect: bool = True,
        answer_discovery_on: int = 1,
        reject_writes: bool = False,
        event_delay_s: float | None = None,
    ) -> None:
        self.services = services
        self.auto_connect = auto_connect
        self.answer_discovery_on = answer_discovery_on
        self.reject_writes = reject_writes
        self.event_delay_s = event_delay_s
        self.calls: list[tuple[str, str]] = []
        self.writes: list[bytes] = []
        self.closed: list[DeviceHandle] = []
        self.discover_calls = 0
        self.on_event = None
        self._ids = itertools.count(1)

    def _fire(self, callback, event: TransportEvent) -> None:
        if self.event_delay_s is None:
            callback(event)
        else:
            threading.Timer(self.event_delay_s, callback, args=(event,)).start()

    def emit(self, event: TransportEvent) -> None:
        self.on_event(event)

    def open(self, address: str, on_event) -> DeviceHandle:
        self.calls.append(("open", address))
        self.on_event = on_event
        handle = DeviceHandle(address=address, id=next(self._ids))
        if self.auto_connect:
            self._fire(on_event, TransportEvent(LinkEvent.CONNECTED))
        return handle

    def discover(self, handle: DeviceHandle) -> None:
        self.calls.append(("discover", handle.address))
        self.discover_calls += 1
        if self.discover_calls >= self.answer_discovery_on:
            self._fire(
                self.on_event,
                TransportEvent(LinkEvent.SERVICES_DISCOVERED, services=self.services),
            )

    def write(self, handle: DeviceHandle, endpoint: DiscoveredEndpoint, payload: bytes) -> None:
        self.calls.append(("write", endpoint.feature_id))
        if self.reject_writes:
            raise WriteRejectedError("GATT write returned error 0x03")
        self.writes.append(payload)

    def close(self, handle: DeviceHandle) -> None:
        self.calls.append(("close", handle.address))
        self.closed.append(handle)

    def scan(self, timeout_s: float = 5.0) -> list[DetectedDevice]:
        return [DetectedDevice(address="5D:C8:1C:36:B7:AC", name="LED_BLE_36B7AC")]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_transport_cls() -> type[FakeTransport]:
    """The fake itself, for tests that script it or subclass it."""
    return FakeTransport
