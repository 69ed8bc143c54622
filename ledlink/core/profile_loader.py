"""Loading and validation of YAML device profiles."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from ledlink.core.errors import ProfileLoadError, ProfileValidationError
from ledlink.core.model import DeviceProfile, EndpointRules, LinkTiming, MatchRules

_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_MAC_RE = re.compile(r"^[0-9A-F]{2}(?::[0-9A-F]{2}){5}$")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, DeviceProfile]
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("ledlink.schemas").joinpath("profile.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "ledlink/profiles", xdg_data / "ledlink/profiles"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileLoadError(f"Could not read profile file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ProfileValidationError(f"Profile file {path} must contain a mapping at root")
    return loaded


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ProfileValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    return normalized


def _normalize_address(value: str, *, context: str) -> str:
    normalized = value.strip().upper()
    if not _MAC_RE.match(normalized):
        raise ProfileValidationError(f"{context} must be a MAC address like AA:BB:CC:DD:EE:FF")
    return normalized


def _fragments(values: list[str]) -> tuple[str, ...]:
    return tuple(v.strip().lower() for v in values)


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> DeviceProfile:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    endpoint_doc = doc["endpoint"]
    endpoint = EndpointRules(
        service_id=_normalize_uuid(
            endpoint_doc["service_uuid"],
            context=f"{doc['id']}.endpoint.service_uuid",
        ),
        write_feature_id=_normalize_uuid(
            endpoint_doc["write_char_uuid"],
            context=f"{doc['id']}.endpoint.write_char_uuid",
        ),
        service_fragments=_fragments(endpoint_doc.get("service_fragments", [])),
        write_fragments=_fragments(endpoint_doc.get("write_fragments", [])),
        generic_services=tuple(
            _normalize_uuid(s, context=f"{doc['id']}.endpoint.generic_services")
            for s in endpoint_doc.get("generic_services", ["1800", "1801", "180a"])
        ),
    )

    defaults = LinkTiming()
    timing_doc = doc.get("timing", {})
    timing = LinkTiming(
        connect_timeout_s=float(timing_doc.get("connect_timeout_s", defaults.connect_timeout_s)),
        discovery_timeout_s=float(timing_doc.get("discovery_timeout_s", defaults.discovery_timeout_s)),
        text_settle_s=float(timing_doc.get("text_settle_s", defaults.text_settle_s)),
        command_settle_s=float(timing_doc.get("command_settle_s", defaults.command_settle_s)),
    )

    default_address = doc.get("default_address")
    return DeviceProfile(
        id=doc["id"],
        name=doc["name"],
        match=MatchRules(name_contains=tuple(doc.get("match", {}).get("name_contains", []))),
        endpoint=endpoint,
        timing=timing,
        default_address=_normalize_address(default_address, context=f"{doc['id']}.default_address")
        if default_address
        else None,
    )


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("ledlink.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, DeviceProfile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        profile = _build_profile(_read_yaml(path), path)
        profiles[profile.id] = profile

    for path in _iter_user_profile_paths():
        profile = _build_profile(_read_yaml(path), path)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
