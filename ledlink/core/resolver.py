"""Selection of the write endpoint from GATT discovery results."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from ledlink.core.errors import EndpointNotFoundError
from ledlink.core.model import (
    DiscoveredEndpoint,
    EndpointRules,
    FeatureDescriptor,
    ResolveTier,
    ServiceDescriptor,
)

_SIG_BASE_RE = re.compile(r"^0000([0-9a-f]{4})-0000-1000-8000-00805f9b34fb$")
LOGGER = logging.getLogger(__name__)

_Match = tuple[ServiceDescriptor, FeatureDescriptor]


def short_uuid(identifier: str) -> str:
    """Return the 16-bit form of a Bluetooth SIG base UUID, else the lowered id."""
    lowered = identifier.strip().lower()
    match = _SIG_BASE_RE.match(lowered)
    return match.group(1) if match else lowered


def _contains_any(identifier: str, fragments: Sequence[str]) -> bool:
    lowered = identifier.lower()
    return any(fragment.lower() in lowered for fragment in fragments)


def _exact_match(services: Sequence[ServiceDescriptor], rules: EndpointRules) -> _Match | None:
    service_id = rules.service_id.lower()
    feature_id = rules.write_feature_id.lower()
    for service in services:
        if service.id.lower() != service_id:
            continue
        for feature in service.features:
            if feature.id.lower() == feature_id:
                return service, feature
    return None


def _heuristic_match(services: Sequence[ServiceDescriptor], rules: EndpointRules) -> _Match | None:
    for service in services:
        if not _contains_any(service.id, rules.service_fragments):
            continue
        for feature in service.features:
            if _contains_any(feature.id, rules.write_fragments) or feature.writable:
                return service, feature
    return None


def _fallback_match(services: Sequence[ServiceDescriptor], rules: EndpointRules) -> _Match | None:
    generic = {short_uuid(s) for s in rules.generic_services}
    for service in services:
        if short_uuid(service.id) in generic:
            continue
        for feature in service.features:
            if feature.writable:
                return service, feature
    return None


_TIERS: tuple[tuple[ResolveTier, Callable[[Sequence[ServiceDescriptor], EndpointRules], _Match | None]], ...] = (
    (ResolveTier.EXACT, _exact_match),
    (ResolveTier.HEURISTIC, _heuristic_match),
    (ResolveTier.FALLBACK, _fallback_match),
)


class EndpointResolver:
    def __init__(self, rules: EndpointRules) -> None:
        self.rules = rules

    def resolve(self, services: Sequence[ServiceDescriptor]) -> DiscoveredEndpoint:
        for tier, matcher in _TIERS:
            found = matcher(services, self.rules)
            if found is None:
                continue
            service, feature = found
            LOGGER.info(
                "Resolved endpoint %s/%s via %s match",
                service.id,
                feature.id,
                tier.value,
            )
            # Features with no advertised properties default to write-with-response.
            with_response = "write" in feature.properties or not feature.writable
            return DiscoveredEndpoint(
                service_id=service.id,
                feature_id=feature.id,
                writable=feature.writable,
                write_with_response=with_response,
                tier=tier,
            )

        seen = ", ".join(s.id for s in services) or "<none>"
        raise EndpointNotFoundError(f"No writable endpoint among discovered services: {seen}")
