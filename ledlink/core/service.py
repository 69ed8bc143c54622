"""Service layer used by the CLI and by UI/orchestration frontends."""

from __future__ import annotations

from ledlink.core.codec import parse_color
from ledlink.core.errors import ProfileSelectionError
from ledlink.core.link import DiagnosticSink, LinkStateMachine
from ledlink.core.model import (
    Clear,
    DetectedDevice,
    DeviceProfile,
    LinkStatus,
    SetBrightness,
    SetPower,
    SetText,
)
from ledlink.core.profile_loader import load_profiles
from ledlink.core.resolver import EndpointResolver
from ledlink.transports.base import Transport
from ledlink.transports.ble_gatt import BLEGATTTransport

DEFAULT_PROFILE = "ipixel"


def profile_for_device(device: DetectedDevice, profiles: dict[str, DeviceProfile]) -> DeviceProfile | None:
    lower_name = device.name.lower()
    for profile in sorted(profiles.values(), key=lambda p: p.id):
        if any(token.lower() in lower_name for token in profile.match.name_contains):
            return profile
    return None


class DisplayService:
    def __init__(
        self,
        *,
        profile_id: str = DEFAULT_PROFILE,
        transport: Transport | None = None,
    ) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        profile = self.profiles.get(profile_id)
        if profile is None:
            available = ", ".join(sorted(self.profiles)) or "<none>"
            raise ProfileSelectionError(f"Unknown profile '{profile_id}'. Available: {available}")
        self.profile = profile
        self.transport = transport or BLEGATTTransport(
            connect_timeout_s=profile.timing.connect_timeout_s,
        )
        self.link = LinkStateMachine(
            self.transport,
            EndpointResolver(profile.endpoint),
            timing=profile.timing,
        )

    def list_profiles(self) -> list[DeviceProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    def list_devices(self, timeout_s: float = 5.0) -> list[DetectedDevice]:
        return self.transport.scan(timeout_s)

    def resolve_address(self, address: str | None) -> str:
        if address:
            return address.strip().upper()
        if self.profile.default_address:
            return self.profile.default_address
        raise ProfileSelectionError(
            f"Profile '{self.profile.id}' has no default address; pass one explicitly."
        )

    def connect(self, address: str | None = None) -> bool:
        return self.link.connect(self.resolve_address(address))

    def disconnect(self) -> None:
        self.link.disconnect()

    def is_ready(self) -> bool:
        return self.link.is_ready()

    def status(self) -> LinkStatus:
        return self.link.status()

    def set_diagnostic_sink(self, sink: DiagnosticSink | None) -> None:
        self.link.set_diagnostic_sink(sink)

    def send_text(self, text: str, color_hex: str) -> bool:
        return self.link.send(SetText(text=text, color=parse_color(color_hex)))

    def show_number(self, value: int, color_hex: str) -> bool:
        return self.send_text(str(value), color_hex)

    def set_brightness(self, level: int) -> bool:
        return self.link.send(SetBrightness(level=level))

    def set_power(self, on: bool) -> bool:
        return self.link.send(SetPower(on=on))

    def clear(self) -> bool:
        return self.link.send(Clear())
