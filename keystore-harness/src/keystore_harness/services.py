"""Service lookup interfaces consumed by the security-level helpers.

The registry is injected rather than reached through a process-global so that
unit tests can substitute a fake; see `AdbServiceLocator` for the on-device
implementation. A locator also carries the service names it was configured
with, so handles resolved through it talk to the same services.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

KS2_SERVICE_NAME = "android.system.keystore2.IKeystoreService/default"
AUTH_SERVICE_NAME = "android.security.authorization"
KEYMINT_DEVICE_DESCRIPTOR = "android.hardware.security.keymint.IKeyMintDevice"


@runtime_checkable
class KeystoreService(Protocol):
    def get_security_level(self, level: int) -> Any: ...


@runtime_checkable
class KeyMintDevice(Protocol):
    def get_interface_version(self) -> int: ...


@runtime_checkable
class ServiceLocator(Protocol):
    keystore_service: str
    authorization_service: str
    keymint_descriptor: str

    def get_interface(self, name: str) -> Any: ...

    def is_declared(self, name: str) -> bool: ...


def get_keystore_service(locator: ServiceLocator, name: Optional[str] = None) -> KeystoreService:
    """Resolve the Keystore2 service; lookup failures propagate."""

    return locator.get_interface(name or locator.keystore_service)


def get_keystore_auth_service(locator: ServiceLocator, name: Optional[str] = None) -> Any:
    """Resolve the Keystore authorization service; lookup failures propagate."""

    return locator.get_interface(name or locator.authorization_service)
