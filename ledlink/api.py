"""Stable public API for building tooling on top of ledlink.

This module is the supported integration surface for UI and orchestration
layers. Every command method blocks until the device link has finished with
it and reports failure as ``False``; only malformed input (bad colors, text
too long to encode) raises.
"""

from __future__ import annotations

from ledlink.core.errors import (
    ColorParseError,
    ConnectTimeoutError,
    DiscoveryFailedError,
    EndpointNotFoundError,
    LedlinkError,
    LengthExceededError,
    ProfileLoadError,
    ProfileSelectionError,
    ProfileValidationError,
    TransportConnectError,
    TransportError,
    TransportTimeoutError,
    TransportUnavailableError,
    WriteRejectedError,
)
from ledlink.core.link import DiagnosticSink
from ledlink.core.model import (
    RGB,
    ConnectionState,
    DetectedDevice,
    DeviceProfile,
    DiscoveredEndpoint,
    LinkStatus,
)
from ledlink.core.service import DEFAULT_PROFILE, DisplayService
from ledlink.transports.base import Transport
from ledlink.transports.ble_gatt import BLEGATTTransport

__all__ = [
    "LedlinkError",
    "ColorParseError",
    "ConnectTimeoutError",
    "DiscoveryFailedError",
    "EndpointNotFoundError",
    "LengthExceededError",
    "ProfileLoadError",
    "ProfileSelectionError",
    "ProfileValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportTimeoutError",
    "TransportUnavailableError",
    "WriteRejectedError",
    "RGB",
    "ConnectionState",
    "DetectedDevice",
    "DeviceProfile",
    "DiscoveredEndpoint",
    "LinkStatus",
    "BLEGATTTransport",
    "Transport",
    "Client",
]


class Client:
    """Public client for driving one LED display.

    A `Client` owns a single device link. Calls are expected to be issued one
    at a time; a command sent while the link is not ready is rejected rather
    than queued.
    """

    def __init__(
        self,
        *,
        profile_id: str = DEFAULT_PROFILE,
        transport: Transport | None = None,
    ) -> None:
        self._service = DisplayService(profile_id=profile_id, transport=transport)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def profile(self) -> DeviceProfile:
        return self._service.profile

    def list_profiles(self) -> list[DeviceProfile]:
        return self._service.list_profiles()

    def list_devices(self, *, timeout_s: float = 5.0) -> list[DetectedDevice]:
        return self._service.list_devices(timeout_s)

    def connect(self, address: str | None = None) -> bool:
        return self._service.connect(address)

    def disconnect(self) -> None:
        self._service.disconnect()

    def is_ready(self) -> bool:
        return self._service.is_ready()

    def status(self) -> LinkStatus:
        return self._service.status()

    def set_diagnostic_sink(self, sink: DiagnosticSink | None) -> None:
        self._service.set_diagnostic_sink(sink)

    def send_text(self, text: str, color_hex: str) -> bool:
        return self._service.send_text(text, color_hex)

    def show_number(self, value: int, color_hex: str) -> bool:
        return self._service.show_number(value, color_hex)

    def set_brightness(self, level: int) -> bool:
        return self._service.set_brightness(level)

    def set_power(self, on: bool) -> bool:
        return self._service.set_power(on)

    def clear(self) -> bool:
        return self._service.clear()
