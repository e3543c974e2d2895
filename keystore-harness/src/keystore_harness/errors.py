"""Error types shared by the temp-dir and security-level helpers.

Keystore2 reports failures as binder service-specific errors carrying a single
integer. Negative values are KeyMint `ErrorCode`s forwarded from the device,
positive values are Keystore2 `ResponseCode`s.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Subset of android.hardware.security.keymint.ErrorCode."""

    OK = 0
    ROOT_OF_TRUST_ALREADY_SET = -1
    UNSUPPORTED_PURPOSE = -2
    INCOMPATIBLE_PURPOSE = -3
    UNSUPPORTED_ALGORITHM = -4
    INCOMPATIBLE_ALGORITHM = -5
    UNSUPPORTED_KEY_SIZE = -6
    INVALID_ARGUMENT = -38
    HARDWARE_TYPE_UNAVAILABLE = -68
    UNIMPLEMENTED = -100
    UNKNOWN_ERROR = -1000


class ResponseCode(IntEnum):
    """Subset of android.system.keystore2.ResponseCode."""

    LOCKED = 2
    UNINITIALIZED = 3
    SYSTEM_ERROR = 4
    PERMISSION_DENIED = 6
    KEY_NOT_FOUND = 7
    VALUE_CORRUPTED = 8
    INVALID_ARGUMENT = 20
    OUT_OF_KEYS = 22


class KeystoreHarnessError(RuntimeError):
    """Base class for harness failures."""


class TempDirCleanupError(KeystoreHarnessError):
    """Raised when a temporary directory cannot be removed at teardown."""


class ServiceNotFoundError(KeystoreHarnessError):
    """Raised when a named service cannot be resolved."""


class RegistryError(KeystoreHarnessError):
    """Raised when the service registry cannot answer a declaration check."""


class ConfigError(KeystoreHarnessError):
    pass


class BinderTransactionError(KeystoreHarnessError):
    """Raised when a transaction fails with a non service-specific status."""

    def __init__(self, message: str, *, exception_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.exception_code = exception_code


class ServiceSpecificError(KeystoreHarnessError):
    """A binder EX_SERVICE_SPECIFIC failure carrying an integer code."""

    def __init__(self, code: int, message: str = "") -> None:
        self.code = int(code)
        self.message = message
        detail = f": {message}" if message else ""
        super().__init__(f"service specific error {self.code}{detail}")

    def error_code(self) -> Optional[ErrorCode]:
        """Return the KeyMint ErrorCode for negative codes, else None."""

        if self.code >= 0:
            return None
        try:
            return ErrorCode(self.code)
        except ValueError:
            return None

    def response_code(self) -> Optional[ResponseCode]:
        """Return the Keystore2 ResponseCode for positive codes, else None."""

        if self.code <= 0:
            return None
        try:
            return ResponseCode(self.code)
        except ValueError:
            return None

    def is_hardware_type_unavailable(self) -> bool:
        return self.code == ErrorCode.HARDWARE_TYPE_UNAVAILABLE
