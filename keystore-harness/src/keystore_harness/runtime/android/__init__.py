"""Android runtime helpers for keystore-harness.

This package intentionally contains *thin* wrappers around adb so that the
security-level helpers can run against a real device. Unit tests substitute
a fake ServiceLocator and never need a running emulator.
"""

from __future__ import annotations

from keystore_harness.runtime.android.binder import (
    AdbServiceLocator,
    BinderProxy,
    KeyMintDeviceProxy,
    KeystoreServiceProxy,
)
from keystore_harness.runtime.android.controller import (
    AdbResult,
    AndroidController,
    AndroidControllerError,
)

__all__ = [
    "AdbResult",
    "AdbServiceLocator",
    "AndroidController",
    "AndroidControllerError",
    "BinderProxy",
    "KeyMintDeviceProxy",
    "KeystoreServiceProxy",
]
