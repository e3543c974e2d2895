from __future__ import annotations

import json
from pathlib import Path

import pytest
from fakes import FakeKeystoreService, FakeServiceLocator, make_locator

from keystore_harness.cli import probe_security_levels
from keystore_harness.errors import ResponseCode, ServiceSpecificError
from keystore_harness.security_level import SecurityLevel
from keystore_harness.services import KS2_SERVICE_NAME


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for var in ("KS_ENV_PROFILE", "KS_ADB_PATH", "KS_ANDROID_SERIAL", "KS_ADB_TIMEOUT_S"):
        monkeypatch.delenv(var, raising=False)


def test_probe_reports_both_levels(capsys, tmp_path: Path) -> None:
    out = tmp_path / "reports" / "levels.json"
    locator = make_locator(tee_keymint_version=3, strongbox="keymaster")
    argv = ["--serial", "emulator-5554", "--out", str(out)]
    rc = probe_security_levels.main(argv, locator=locator)
    assert rc == 0

    report = json.loads(capsys.readouterr().out)
    assert report["serial"] == "emulator-5554"
    assert report["levels"] == [
        {
            "level": "TRUSTED_ENVIRONMENT",
            "present": True,
            "keymint": True,
            "keymint_version": 3,
            "reason": None,
        },
        {
            "level": "STRONGBOX",
            "present": True,
            "keymint": False,
            "keymint_version": 0,
            "reason": None,
        },
    ]
    assert json.loads(out.read_text(encoding="utf-8")) == report


def test_probe_reports_absent_strongbox(capsys) -> None:
    rc = probe_security_levels.main([], locator=make_locator(strongbox="absent"))
    assert rc == 0
    levels = json.loads(capsys.readouterr().out)["levels"]
    assert levels[1]["level"] == "STRONGBOX"
    assert levels[1]["present"] is False
    assert levels[1]["keymint"] is None
    assert "-68" in levels[1]["reason"]


def test_probe_fails_when_tee_lookup_fails(capsys) -> None:
    err = ServiceSpecificError(ResponseCode.SYSTEM_ERROR)
    keystore = FakeKeystoreService(failures={SecurityLevel.TRUSTED_ENVIRONMENT: err})
    locator = FakeServiceLocator(services={KS2_SERVICE_NAME: keystore})
    rc = probe_security_levels.main([], locator=locator)
    assert rc == 1
    assert "ServiceSpecificError" in capsys.readouterr().err


def test_invalid_env_profile_reports_error(capsys, tmp_path: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("colour: blue\n", encoding="utf-8")
    rc = probe_security_levels.main(["--env_profile", str(bad)], locator=make_locator())
    assert rc == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("ERROR:")
    assert "colour" in captured.err


def test_missing_env_profile_reports_error(capsys, tmp_path: Path) -> None:
    missing = tmp_path / "nope.yaml"
    rc = probe_security_levels.main(["--env_profile", str(missing)], locator=make_locator())
    assert rc == 1
    assert "ERROR: env profile not found" in capsys.readouterr().err


def test_unsupported_env_profile_extension_reports_error(capsys, tmp_path: Path) -> None:
    profile = tmp_path / "profile.toml"
    profile.write_text("id = 'x'\n", encoding="utf-8")
    rc = probe_security_levels.main(["--env_profile", str(profile)], locator=make_locator())
    assert rc == 1
    assert "Unsupported env profile extension" in capsys.readouterr().err


def test_bad_timeout_env_var_reports_error(capsys, monkeypatch) -> None:
    monkeypatch.setenv("KS_ADB_TIMEOUT_S", "soon")
    rc = probe_security_levels.main([], locator=make_locator())
    assert rc == 1
    assert "KS_ADB_TIMEOUT_S" in capsys.readouterr().err


@pytest.mark.parametrize("timeout", ["0", "-5"])
def test_non_positive_timeout_flag_is_rejected(capsys, timeout: str) -> None:
    rc = probe_security_levels.main([f"--timeout_s={timeout}"], locator=make_locator())
    assert rc == 1
    assert "--timeout_s must be positive" in capsys.readouterr().err
