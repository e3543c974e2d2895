"""keystore-harness: test scaffolding for Keystore2 test suites.

Provides:
- `TempDir`, a self-cleaning temporary directory with collision-safe naming
- `SecurityLevelHandle`, per-tier Keystore2 handles with a KeyMint/Keymaster probe
- an adb-backed `ServiceLocator` and a pytest plugin wiring both together
"""

from __future__ import annotations

from keystore_harness.errors import (
    BinderTransactionError,
    ConfigError,
    ErrorCode,
    KeystoreHarnessError,
    RegistryError,
    ResponseCode,
    ServiceNotFoundError,
    ServiceSpecificError,
    TempDirCleanupError,
)
from keystore_harness.security_level import (
    Absent,
    Present,
    SecurityLevel,
    SecurityLevelHandle,
    TierLookup,
)
from keystore_harness.services import (
    ServiceLocator,
    get_keystore_auth_service,
    get_keystore_service,
)
from keystore_harness.tempdir import PathBuilder, TempDir

__all__ = [
    "Absent",
    "BinderTransactionError",
    "ConfigError",
    "ErrorCode",
    "KeystoreHarnessError",
    "PathBuilder",
    "Present",
    "RegistryError",
    "ResponseCode",
    "SecurityLevel",
    "SecurityLevelHandle",
    "ServiceLocator",
    "ServiceNotFoundError",
    "ServiceSpecificError",
    "TempDir",
    "TempDirCleanupError",
    "TierLookup",
    "get_keystore_auth_service",
    "get_keystore_service",
]
