"""Security level handles for Keystore2 tests.

A `SecurityLevelHandle` bundles the Keystore2 service, the
`IKeystoreSecurityLevel` sub-interface for one tier and the tier itself. The
TEE tier is mandatory; StrongBox may be absent on a device, in which case the
lookup returns `Absent` instead of a handle.

Whether a tier is backed by KeyMint or by a legacy Keymaster device is decided
by asking the registry whether `IKeyMintDevice/<instance>` is declared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Union

from keystore_harness.errors import ServiceSpecificError
from keystore_harness.services import (
    KEYMINT_DEVICE_DESCRIPTOR,
    KeyMintDevice,
    KeystoreService,
    ServiceLocator,
    get_keystore_service,
)

logger = logging.getLogger(__name__)


class SecurityLevel(IntEnum):
    """android.hardware.security.keymint.SecurityLevel"""

    SOFTWARE = 0
    TRUSTED_ENVIRONMENT = 1
    STRONGBOX = 2
    KEYSTORE = 100


_KEYMINT_INSTANCES = {
    SecurityLevel.TRUSTED_ENVIRONMENT: "default",
    SecurityLevel.STRONGBOX: "strongbox",
}


def keymint_instance_name(level: SecurityLevel) -> str:
    try:
        return _KEYMINT_INSTANCES[SecurityLevel(level)]
    except (KeyError, ValueError):
        raise ValueError(f"unexpected level {level!r}") from None


def keymint_service_name(
    level: SecurityLevel, *, descriptor: str = KEYMINT_DEVICE_DESCRIPTOR
) -> str:
    return f"{descriptor}/{keymint_instance_name(level)}"


@dataclass(frozen=True)
class Present:
    handle: "SecurityLevelHandle"


@dataclass(frozen=True)
class Absent:
    level: SecurityLevel
    reason: str


TierLookup = Union[Present, Absent]


@dataclass(frozen=True)
class SecurityLevelHandle:
    """Security level-specific data.

    Attributes:
        keystore2: connection to the top-level Keystore2 service.
        binder: connection to the `IKeystoreSecurityLevel` for `level`.
        level: the security level `binder` was obtained for.
        locator: registry used for the KeyMint/Keymaster check.

    Equality and hashing only consider `level`; the connections are opaque.
    """

    keystore2: KeystoreService = field(compare=False)
    binder: Any = field(compare=False)
    level: SecurityLevel
    locator: ServiceLocator = field(compare=False)

    @classmethod
    def tee(cls, locator: ServiceLocator) -> "SecurityLevelHandle":
        """Return the TEE security level. It should always be present."""

        return cls._resolve(SecurityLevel.TRUSTED_ENVIRONMENT, locator)

    @classmethod
    def strongbox(cls, locator: ServiceLocator) -> TierLookup:
        """Return the StrongBox security level, or `Absent` if the device has none."""

        return cls.for_tier(SecurityLevel.STRONGBOX, locator, optional=True)

    @classmethod
    def for_tier(
        cls,
        level: SecurityLevel,
        locator: ServiceLocator,
        *,
        optional: bool = False,
    ) -> TierLookup:
        """Resolve `level` through the Keystore2 service.

        For mandatory tiers every failure propagates. For optional tiers only
        HARDWARE_TYPE_UNAVAILABLE is turned into `Absent`.
        """

        level = SecurityLevel(level)
        try:
            return Present(cls._resolve(level, locator))
        except ServiceSpecificError as e:
            if optional and e.is_hardware_type_unavailable():
                logger.info("security level %s unavailable", level.name)
                return Absent(level=level, reason=str(e))
            raise

    @classmethod
    def _resolve(cls, level: SecurityLevel, locator: ServiceLocator) -> "SecurityLevelHandle":
        keystore2 = get_keystore_service(locator)
        binder = keystore2.get_security_level(int(level))
        logger.info("resolved security level %s", level.name)
        return cls(keystore2=keystore2, binder=binder, level=level, locator=locator)

    def keymint_service_name(self) -> str:
        return keymint_service_name(self.level, descriptor=self.locator.keymint_descriptor)

    def is_keymint(self) -> bool:
        """Indicate whether this security level is a KeyMint implementation (not Keymaster)."""

        return bool(self.locator.is_declared(self.keymint_service_name()))

    def is_keymaster(self) -> bool:
        """Indicate whether this security level is a Keymaster implementation (not KeyMint)."""

        return not self.is_keymint()

    def keymint_version(self) -> int:
        """Get the KeyMint interface version.

        Returns 0 if the underlying device is Keymaster, not KeyMint.
        """

        name = self.keymint_service_name()
        if not self.locator.is_declared(name):
            return 0
        device: KeyMintDevice = self.locator.get_interface(name)
        return int(device.get_interface_version())
