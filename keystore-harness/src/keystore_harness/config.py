"""Env profile loading.

An env profile pins the device and service names a test run talks to:

    id: pixel_lab
    adb_path: /opt/android-sdk/platform-tools/adb
    serial: emulator-5554
    timeout_s: 20

Precedence is defaults < profile file < environment variables
(`KS_ADB_PATH`, `KS_ANDROID_SERIAL`, `KS_ADB_TIMEOUT_S`). The profile path
itself may come from `KS_ENV_PROFILE`.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from jsonschema import Draft202012Validator

from keystore_harness.errors import ConfigError
from keystore_harness.runtime.android.binder import AdbServiceLocator
from keystore_harness.runtime.android.controller import AndroidController
from keystore_harness.services import (
    AUTH_SERVICE_NAME,
    KEYMINT_DEVICE_DESCRIPTOR,
    KS2_SERVICE_NAME,
)

SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "env_profile.schema.json"

ENV_PROFILE_VAR = "KS_ENV_PROFILE"
ENV_ADB_PATH_VAR = "KS_ADB_PATH"
ENV_SERIAL_VAR = "KS_ANDROID_SERIAL"
ENV_TIMEOUT_VAR = "KS_ADB_TIMEOUT_S"


@dataclass(frozen=True)
class EnvProfile:
    id: str = "default"
    adb_path: str = "adb"
    serial: Optional[str] = None
    timeout_s: float = 30.0
    keystore_service: str = KS2_SERVICE_NAME
    authorization_service: str = AUTH_SERVICE_NAME
    keymint_descriptor: str = KEYMINT_DEVICE_DESCRIPTOR


def load_schema(schema_path: Path = SCHEMA_PATH) -> Dict[str, Any]:
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    if not isinstance(schema, dict):
        raise ConfigError(f"Schema must be an object: {schema_path}")
    return schema


def validate_env_profile(data: Dict[str, Any], *, where: str) -> None:
    validator = Draft202012Validator(load_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        msgs = []
        for e in errors:
            loc = "/".join([str(p) for p in e.path])
            msgs.append(f"- {where}:{loc}: {e.message}")
        raise ConfigError("\n".join(msgs))


def load_env_profile(path: Path) -> EnvProfile:
    """Load and validate a YAML/JSON env profile.

    The top-level must be an object.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    elif path.suffix.lower() == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
    else:
        raise ValueError(f"Unsupported env profile extension: {path}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"env profile must be a mapping: {path}")
    validate_env_profile(data, where=str(path))

    profile = EnvProfile(id=path.stem)
    return replace(profile, **data)


def resolve_env_profile(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> EnvProfile:
    env = os.environ if environ is None else environ

    if path is None and env.get(ENV_PROFILE_VAR):
        path = Path(env[ENV_PROFILE_VAR])
    profile = load_env_profile(path) if path is not None else EnvProfile()

    overrides: Dict[str, Any] = {}
    if env.get(ENV_ADB_PATH_VAR):
        overrides["adb_path"] = env[ENV_ADB_PATH_VAR]
    if env.get(ENV_SERIAL_VAR):
        overrides["serial"] = env[ENV_SERIAL_VAR]
    raw_timeout = env.get(ENV_TIMEOUT_VAR)
    if raw_timeout:
        try:
            timeout_s = float(raw_timeout)
        except ValueError:
            raise ConfigError(f"{ENV_TIMEOUT_VAR} must be a number: {raw_timeout!r}") from None
        if timeout_s <= 0:
            raise ConfigError(f"{ENV_TIMEOUT_VAR} must be positive: {raw_timeout!r}")
        overrides["timeout_s"] = timeout_s
    return replace(profile, **overrides)


def build_service_locator(profile: EnvProfile) -> AdbServiceLocator:
    """Return an AdbServiceLocator wired from `profile`."""

    controller = AndroidController(
        adb_path=profile.adb_path,
        serial=profile.serial,
        timeout_s=profile.timeout_s,
    )
    return AdbServiceLocator(
        controller,
        keystore_service=profile.keystore_service,
        authorization_service=profile.authorization_service,
        keymint_descriptor=profile.keymint_descriptor,
    )
