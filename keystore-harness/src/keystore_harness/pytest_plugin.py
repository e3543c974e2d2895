"""pytest fixtures for Keystore2 test suites.

Registered through the `pytest11` entry point. Suites that run without a
device override `ks_service_locator` with a fake.
"""

from __future__ import annotations

import re
from typing import Iterator

import pytest

from keystore_harness.config import build_service_locator, resolve_env_profile
from keystore_harness.security_level import Absent, SecurityLevelHandle
from keystore_harness.services import ServiceLocator
from keystore_harness.tempdir import TempDir

_UNSAFE_PREFIX_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def temp_dir_prefix(node_name: str) -> str:
    prefix = _UNSAFE_PREFIX_CHARS.sub("_", node_name).strip("_.")
    return prefix[:64] or "ks_test"


@pytest.fixture
def ks_temp_dir(request: pytest.FixtureRequest) -> Iterator[TempDir]:
    with TempDir.allocate(temp_dir_prefix(request.node.name)) as tdir:
        yield tdir


@pytest.fixture(scope="session")
def ks_service_locator() -> ServiceLocator:
    return build_service_locator(resolve_env_profile())


@pytest.fixture
def ks_tee(ks_service_locator: ServiceLocator) -> SecurityLevelHandle:
    return SecurityLevelHandle.tee(ks_service_locator)


@pytest.fixture
def ks_strongbox(ks_service_locator: ServiceLocator) -> SecurityLevelHandle:
    lookup = SecurityLevelHandle.strongbox(ks_service_locator)
    if isinstance(lookup, Absent):
        pytest.skip(f"StrongBox not available: {lookup.reason}")
    return lookup.handle
