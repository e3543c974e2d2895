from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from keystore_harness.config import (
    EnvProfile,
    build_service_locator,
    load_env_profile,
    resolve_env_profile,
)
from keystore_harness.errors import ConfigError
from keystore_harness.runtime.android.binder import AdbServiceLocator
from keystore_harness.services import KS2_SERVICE_NAME


def _write_yaml(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def test_load_env_profile_yaml(tmp_path: Path) -> None:
    path = _write_yaml(
        tmp_path / "pixel_lab.yaml",
        {"adb_path": "/opt/adb", "serial": "emulator-5554", "timeout_s": 5},
    )
    profile = load_env_profile(path)
    assert profile.id == "pixel_lab"
    assert profile.adb_path == "/opt/adb"
    assert profile.serial == "emulator-5554"
    assert profile.timeout_s == 5
    assert profile.keystore_service == KS2_SERVICE_NAME


def test_load_env_profile_json_with_explicit_id(tmp_path: Path) -> None:
    path = tmp_path / "p.json"
    path.write_text(json.dumps({"id": "lab", "serial": None}), encoding="utf-8")
    profile = load_env_profile(path)
    assert profile.id == "lab"
    assert profile.serial is None


def test_empty_profile_uses_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_env_profile(path) == EnvProfile(id="empty")


def test_load_env_profile_rejects_unknown_keys_and_bad_types(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "bad.yaml", {"timeout_s": -1, "colour": "blue"})
    with pytest.raises(ConfigError) as excinfo:
        load_env_profile(path)
    msg = str(excinfo.value)
    assert "colour" in msg
    assert "timeout_s" in msg


def test_load_env_profile_rejects_non_mapping(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "list.yaml", ["a", "b"])
    with pytest.raises(ConfigError):
        load_env_profile(path)


def test_load_env_profile_missing_and_unsupported(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_env_profile(tmp_path / "nope.yaml")
    txt = tmp_path / "p.txt"
    txt.write_text("x", encoding="utf-8")
    with pytest.raises(ValueError):
        load_env_profile(txt)


def test_resolve_env_profile_env_overrides_file(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "lab.yaml", {"serial": "from-file", "adb_path": "/file/adb"})
    env = {
        "KS_ENV_PROFILE": str(path),
        "KS_ANDROID_SERIAL": "from-env",
        "KS_ADB_TIMEOUT_S": "7.5",
    }
    profile = resolve_env_profile(environ=env)
    assert profile.id == "lab"
    assert profile.serial == "from-env"
    assert profile.adb_path == "/file/adb"
    assert profile.timeout_s == 7.5


def test_resolve_env_profile_defaults() -> None:
    assert resolve_env_profile(environ={}) == EnvProfile()


@pytest.mark.parametrize("raw", ["soon", "0", "-3"])
def test_resolve_env_profile_rejects_bad_timeout(raw: str) -> None:
    with pytest.raises(ConfigError):
        resolve_env_profile(environ={"KS_ADB_TIMEOUT_S": raw})


def test_build_service_locator_wires_controller() -> None:
    profile = EnvProfile(adb_path="/x/adb", serial="s1", timeout_s=3.0)
    locator = build_service_locator(profile)
    assert isinstance(locator, AdbServiceLocator)
    assert locator.controller.adb_path == "/x/adb"
    assert locator.controller.serial == "s1"
    assert locator.keystore_service == profile.keystore_service
    assert locator.authorization_service == profile.authorization_service
    assert locator.keymint_descriptor == profile.keymint_descriptor
