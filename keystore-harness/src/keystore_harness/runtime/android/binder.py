"""On-device service registry access through the `service` shell tool.

`adb shell service check <name>` answers declaration checks and
`adb shell service call <name> <code> [i32 N ...]` performs a raw binder
transaction. The tool prints the reply Parcel as a hex dump, e.g.

  Result: Parcel(
    0x00000000: fffffff8 00000000 00000000 ffffffbc '................')

This module turns such dumps back into 32-bit words and decodes the binder
status header that precedes every AIDL reply:

  int32   exception code (0 = none)
  String16 message
  int32   remote stack trace header size
  int32   service specific error (only for EX_SERVICE_SPECIFIC)
"""

from __future__ import annotations

import logging
import re
import shlex
import struct
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from keystore_harness.errors import (
    BinderTransactionError,
    RegistryError,
    ServiceNotFoundError,
    ServiceSpecificError,
)
from keystore_harness.runtime.android.controller import AndroidController, AndroidControllerError
from keystore_harness.services import (
    AUTH_SERVICE_NAME,
    KEYMINT_DEVICE_DESCRIPTOR,
    KS2_SERVICE_NAME,
)

logger = logging.getLogger(__name__)

FIRST_CALL_TRANSACTION = 1
# AIDL reserves FIRST_CALL_TRANSACTION + 16777214 for getInterfaceVersion().
GET_INTERFACE_VERSION_TRANSACTION = FIRST_CALL_TRANSACTION + 16777214
GET_SECURITY_LEVEL_TRANSACTION = FIRST_CALL_TRANSACTION + 0

EX_NONE = 0
EX_SERVICE_SPECIFIC = -8
EX_HAS_REPLY_HEADER = -128

_EXCEPTION_NAMES = {
    -1: "EX_SECURITY",
    -2: "EX_BAD_PARCELABLE",
    -3: "EX_ILLEGAL_ARGUMENT",
    -4: "EX_NULL_POINTER",
    -5: "EX_ILLEGAL_STATE",
    -6: "EX_NETWORK_MAIN_THREAD",
    -7: "EX_UNSUPPORTED_OPERATION",
    -8: "EX_SERVICE_SPECIFIC",
    -9: "EX_PARCELABLE",
    -129: "EX_TRANSACTION_FAILED",
}

_OFFSET_RE = re.compile(r"^\s*0x[0-9a-fA-F]+:\s*")
_WORD_RE = re.compile(r"^[0-9a-fA-F]{8}$")
_CHECK_RE = re.compile(r"^Service\s+(?P<name>\S+):\s*(?P<state>found|not found)\s*$")


def _to_int32(word: int) -> int:
    return struct.unpack("<i", struct.pack("<I", word & 0xFFFFFFFF))[0]


def parse_parcel_words(stdout: str) -> list[int]:
    """Extract the reply Parcel of `service call` as signed 32-bit words."""

    txt = (stdout or "").replace("\r", "")
    start = txt.find("Parcel(")
    if start < 0:
        raise BinderTransactionError(f"unrecognized service call output: {txt.strip()[:200]}")
    body = txt[start + len("Parcel(") :]
    if body.startswith("NULL"):
        return []
    if body.lstrip().startswith("Error:"):
        raise BinderTransactionError(f"transaction failed: {body.strip()[:200]}")

    words: list[int] = []
    for raw_line in body.splitlines():
        line = _OFFSET_RE.sub("", raw_line)
        for token in line.split():
            token = token.rstrip(")")
            if not _WORD_RE.match(token):
                break
            words.append(_to_int32(int(token, 16)))
    return words


class _Reader:
    def __init__(self, words: Sequence[int]) -> None:
        self._words = list(words)
        self.pos = 0

    def remaining(self) -> list[int]:
        return self._words[self.pos :]

    def read_int32(self) -> int:
        if self.pos >= len(self._words):
            raise BinderTransactionError("truncated reply parcel")
        value = self._words[self.pos]
        self.pos += 1
        return value

    def read_string16(self) -> Optional[str]:
        length = self.read_int32()
        if length < 0:
            return None
        n_words = ((length + 1) * 2 + 3) // 4
        if self.pos + n_words > len(self._words):
            raise BinderTransactionError("truncated String16 in reply parcel")
        raw = b"".join(struct.pack("<i", w) for w in self._words[self.pos : self.pos + n_words])
        self.pos += n_words
        return raw[: length * 2].decode("utf-16-le", errors="replace")

    def skip_bytes(self, n: int) -> None:
        self.pos += (n + 3) // 4


def decode_reply(words: Sequence[int]) -> list[int]:
    """Strip the binder status header and return the payload words.

    Raises ServiceSpecificError for EX_SERVICE_SPECIFIC and
    BinderTransactionError for every other non-zero exception code.
    """

    reader = _Reader(words)
    exception = reader.read_int32()
    if exception == EX_HAS_REPLY_HEADER:
        header_start = reader.pos
        header_size = reader.read_int32()
        reader.pos = header_start
        reader.skip_bytes(header_size)
        return reader.remaining()
    if exception == EX_NONE:
        return reader.remaining()

    message = reader.read_string16() or ""
    trace_start = reader.pos
    trace_size = reader.read_int32()
    if trace_size > 0:
        reader.pos = trace_start
        reader.skip_bytes(trace_size)
    if exception == EX_SERVICE_SPECIFIC:
        raise ServiceSpecificError(reader.read_int32(), message)
    name = _EXCEPTION_NAMES.get(exception, str(exception))
    detail = f": {message}" if message else ""
    raise BinderTransactionError(f"binder exception {name}{detail}", exception_code=exception)


@dataclass(frozen=True)
class BinderRef:
    """A binder object returned inside a reply; only its origin is recorded."""

    service_name: str
    transaction: int
    args: tuple[int, ...]


class BinderProxy:
    """Raw transactions against a registered service via `service call`."""

    def __init__(self, controller: AndroidController, name: str) -> None:
        self._controller = controller
        self.name = name

    def transact(self, code: int, *int32_args: int) -> list[int]:
        parts = ["service", "call", self.name, str(int(code))]
        for value in int32_args:
            parts += ["i32", str(int(value))]
        cmd = " ".join(shlex.quote(p) for p in parts)
        res = self._controller.adb_shell(cmd, check=False)
        if not res.ok():
            raise BinderTransactionError(
                f"service call failed (rc={res.returncode}): {cmd}\n"
                f"stderr: {(res.stderr or '')[:500]}"
            )
        return decode_reply(parse_parcel_words(res.stdout))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class KeystoreServiceProxy(BinderProxy):
    def get_security_level(self, level: int) -> BinderRef:
        self.transact(GET_SECURITY_LEVEL_TRANSACTION, int(level))
        return BinderRef(
            service_name=self.name,
            transaction=GET_SECURITY_LEVEL_TRANSACTION,
            args=(int(level),),
        )


class KeyMintDeviceProxy(BinderProxy):
    def get_interface_version(self) -> int:
        payload = self.transact(GET_INTERFACE_VERSION_TRANSACTION)
        if not payload:
            raise BinderTransactionError(f"empty getInterfaceVersion reply from {self.name}")
        return payload[0]


class AdbServiceLocator:
    """ServiceLocator backed by the device service manager over adb."""

    def __init__(
        self,
        controller: AndroidController,
        *,
        keystore_service: str = KS2_SERVICE_NAME,
        authorization_service: str = AUTH_SERVICE_NAME,
        keymint_descriptor: str = KEYMINT_DEVICE_DESCRIPTOR,
    ) -> None:
        self._controller = controller
        self.keystore_service = keystore_service
        self.authorization_service = authorization_service
        self.keymint_descriptor = keymint_descriptor

    @property
    def controller(self) -> AndroidController:
        return self._controller

    def is_declared(self, name: str) -> bool:
        cmd = " ".join(shlex.quote(p) for p in ("service", "check", name))
        try:
            res = self._controller.adb_shell(cmd, check=True)
        except AndroidControllerError as e:
            raise RegistryError(f"Could not check for declared interface {name}") from e
        for raw in (res.stdout or "").splitlines():
            m = _CHECK_RE.match(raw.strip())
            if m and m.group("name") == name:
                declared = m.group("state") == "found"
                logger.debug("service check %s -> %s", name, declared)
                return declared
        raise RegistryError(
            f"Could not check for declared interface {name}: "
            f"unexpected output {(res.stdout or '').strip()[:200]!r}"
        )

    def get_interface(self, name: str) -> Any:
        try:
            declared = self.is_declared(name)
        except RegistryError as e:
            raise ServiceNotFoundError(f"service lookup failed: {name}") from e
        if not declared:
            raise ServiceNotFoundError(f"service not found: {name}")
        if name == self.keystore_service:
            return KeystoreServiceProxy(self._controller, name)
        if name.startswith(self.keymint_descriptor + "/"):
            return KeyMintDeviceProxy(self._controller, name)
        return BinderProxy(self._controller, name)
