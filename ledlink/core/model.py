"""Core data models used across codec, resolver, link, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

_WRITE_PROPERTIES = frozenset({"write", "write-without-response"})


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCOVERING = "discovering"
    READY = "ready"
    DISCONNECTING = "disconnecting"
    FAILED = "failed"


class LinkEvent(Enum):
    CONNECTED = "connected"
    CONNECT_FAILED = "connect-failed"
    SERVICES_DISCOVERED = "services-discovered"
    DISCOVERY_FAILED = "discovery-failed"
    DISCONNECTED = "disconnected"


class ResolveTier(Enum):
    EXACT = "exact"
    HEURISTIC = "heuristic"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class RGB:
    red: int
    green: int
    blue: int

    def __bytes__(self) -> bytes:
        return bytes((self.red, self.green, self.blue))


@dataclass(frozen=True)
class FeatureDescriptor:
    id: str
    properties: tuple[str, ...] = ()

    @property
    def writable(self) -> bool:
        return any(prop in _WRITE_PROPERTIES for prop in self.properties)


@dataclass(frozen=True)
class ServiceDescriptor:
    id: str
    features: tuple[FeatureDescriptor, ...] = ()


@dataclass(frozen=True)
class DiscoveredEndpoint:
    service_id: str
    feature_id: str
    writable: bool
    write_with_response: bool = True
    tier: ResolveTier = ResolveTier.EXACT


@dataclass(frozen=True)
class DeviceHandle:
    """Opaque token for one open transport session."""

    address: str
    id: int


@dataclass(frozen=True)
class TransportEvent:
    kind: LinkEvent
    services: tuple[ServiceDescriptor, ...] = ()
    reason: str | None = None


@dataclass(frozen=True)
class SetText:
    text: str
    color: RGB


@dataclass(frozen=True)
class SetBrightness:
    level: int


@dataclass(frozen=True)
class SetPower:
    on: bool


@dataclass(frozen=True)
class Clear:
    pass


Command = SetText | SetBrightness | SetPower | Clear


@dataclass(frozen=True)
class LinkTiming:
    connect_timeout_s: float = 10.0
    discovery_timeout_s: float = 5.0
    text_settle_s: float = 0.5
    command_settle_s: float = 0.3


@dataclass(frozen=True)
class EndpointRules:
    service_id: str
    write_feature_id: str
    service_fragments: tuple[str, ...] = ()
    write_fragments: tuple[str, ...] = ()
    generic_services: tuple[str, ...] = ("1800", "1801", "180a")


@dataclass(frozen=True)
class MatchRules:
    name_contains: tuple[str, ...]


@dataclass(frozen=True)
class DeviceProfile:
    id: str
    name: str
    match: MatchRules
    endpoint: EndpointRules
    timing: LinkTiming = field(default_factory=LinkTiming)
    default_address: str | None = None


@dataclass(frozen=True)
class LinkStatus:
    state: ConnectionState
    address: str | None
    endpoint: DiscoveredEndpoint | None
    failure_reason: str | None


@dataclass(frozen=True)
class DetectedDevice:
    address: str
    name: str
