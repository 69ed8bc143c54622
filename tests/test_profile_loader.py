from __future__ import annotations

from pathlib import Path

import pytest

from ledlink.core.errors import ProfileValidationError
from ledlink.core.profile_loader import load_profiles


def _write_profile(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def _isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def test_load_packaged_profile() -> None:
    loaded = load_profiles()
    profile = loaded.profiles["ipixel"]
    assert profile.endpoint.service_id == "0000fa00-0000-1000-8000-00805f9b34fb"
    assert profile.endpoint.write_feature_id == "0000fa02-0000-1000-8000-00805f9b34fb"
    assert "fa00" in profile.endpoint.service_fragments
    assert profile.default_address == "5D:C8:1C:36:B7:AC"
    assert profile.timing.text_settle_s == 0.5
    assert profile.timing.command_settle_s == 0.3
    assert loaded.warnings == ()


def test_invalid_uuid_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "ledlink" / "profiles" / "bad.yaml",
        """
id: bad_uuid
name: Bad UUID
endpoint:
  service_uuid: "not-a-uuid"
  write_char_uuid: "fa02"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_missing_endpoint_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "ledlink" / "profiles" / "missing.yaml",
        """
id: missing
name: Missing
match:
  name_contains: ["Missing"]
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_invalid_default_address_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "data" / "ledlink" / "profiles" / "addr.yaml",
        """
id: addr
name: Address
default_address: "5D-C8-1C"
endpoint:
  service_uuid: "fa00"
  write_char_uuid: "fa02"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "ledlink" / "profiles" / "dup.yaml",
        """
id: dup
name: Duplicate
endpoint:
  service_uuid: "fa00"
  service_uuid: "ffe0"
  write_char_uuid: "fa02"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_user_profile_overrides_packaged(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "ledlink" / "profiles" / "override.yaml",
        """
id: ipixel
name: Patched iPixel
default_address: "aa:bb:cc:dd:ee:ff"
endpoint:
  service_uuid: "0000FFE0-0000-1000-8000-00805F9B34FB"
  write_char_uuid: "0000ffe1-0000-1000-8000-00805f9b34fb"
timing:
  connect_timeout_s: 3
""",
    )

    loaded = load_profiles()
    profile = loaded.profiles["ipixel"]
    assert profile.name == "Patched iPixel"
    assert profile.match.name_contains == ()
    assert profile.default_address == "AA:BB:CC:DD:EE:FF"
    assert profile.endpoint.service_id == "0000ffe0-0000-1000-8000-00805f9b34fb"
    assert profile.endpoint.generic_services == ("1800", "1801", "180a")
    assert profile.timing.connect_timeout_s == 3.0
    assert profile.timing.discovery_timeout_s == 5.0
    assert any("overrides" in warning for warning in loaded.warnings)


def test_unknown_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "ledlink" / "profiles" / "extra.yaml",
        """
id: extra
name: Extra
endpoint:
  service_uuid: "fa00"
  write_char_uuid: "fa02"
timing:
  settle_s: 1
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()
