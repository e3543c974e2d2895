from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from keystore_harness.config import build_service_locator, resolve_env_profile
from keystore_harness.errors import ConfigError, KeystoreHarnessError
from keystore_harness.runtime.android.controller import AndroidControllerError
from keystore_harness.security_level import Absent, Present, SecurityLevelHandle, TierLookup
from keystore_harness.services import ServiceLocator


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def describe_tier(lookup: TierLookup) -> Dict[str, Any]:
    if isinstance(lookup, Absent):
        return {
            "level": lookup.level.name,
            "present": False,
            "keymint": None,
            "keymint_version": None,
            "reason": lookup.reason,
        }
    handle = lookup.handle
    keymint = handle.is_keymint()
    return {
        "level": handle.level.name,
        "present": True,
        "keymint": keymint,
        "keymint_version": handle.keymint_version(),
        "reason": None,
    }


def probe_security_levels(locator: ServiceLocator) -> list[Dict[str, Any]]:
    tee = Present(SecurityLevelHandle.tee(locator))
    strongbox = SecurityLevelHandle.strongbox(locator)
    return [describe_tier(tee), describe_tier(strongbox)]


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    locator: Optional[ServiceLocator] = None,
) -> int:
    parser = argparse.ArgumentParser(
        description="Report which Keystore2 security levels are present and how they are backed."
    )
    parser.add_argument(
        "--env_profile",
        type=Path,
        default=None,
        help="Env profile YAML/JSON (default: $KS_ENV_PROFILE or built-in defaults)",
    )
    parser.add_argument("--serial", type=str, default=None, help="adb device serial")
    parser.add_argument("--adb_path", type=str, default=None, help="Path to adb binary")
    parser.add_argument(
        "--timeout_s", type=float, default=None, help="Timeout for individual adb calls"
    )
    parser.add_argument("--out", type=Path, default=None, help="Also write the report here")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    if args.timeout_s is not None and args.timeout_s <= 0:
        print(f"ERROR: --timeout_s must be positive: {args.timeout_s}", file=sys.stderr)
        return 1

    try:
        profile = resolve_env_profile(args.env_profile)
    except FileNotFoundError as e:
        print(f"ERROR: env profile not found: {e}", file=sys.stderr)
        return 1
    except (ConfigError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    overrides: Dict[str, Any] = {}
    if args.serial:
        overrides["serial"] = args.serial
    if args.adb_path:
        overrides["adb_path"] = args.adb_path
    if args.timeout_s is not None:
        overrides["timeout_s"] = args.timeout_s
    profile = replace(profile, **overrides)

    build_fingerprint = None
    if locator is None:
        adb_locator = build_service_locator(profile)
        locator = adb_locator
        try:
            build_fingerprint = adb_locator.controller.get_build_fingerprint() or None
        except AndroidControllerError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    try:
        levels = probe_security_levels(locator)
    except (KeystoreHarnessError, AndroidControllerError) as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    report = {
        "serial": profile.serial,
        "build_fingerprint": build_fingerprint,
        "levels": levels,
    }
    text = _json_dumps(report)
    if args.out is not None:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")
    print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
