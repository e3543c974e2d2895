"""Self-cleaning temporary directories for tests.

`TempDir.allocate("my_test")` creates `<tmp>/my_test_NNNNN` where NNNNN is a
zero padded random 16-bit number. The directory and everything below it is
removed when the owning `with` block exits (or `close()` is called).

Example
-------

    with TempDir.allocate("my_test") as tdir:
        db = tdir.build().push("foo").push("bar.db")
        open_database(db)

Concurrent test processes share the temp root without locking: a name that is
already taken is simply retried with a fresh suffix.
"""

from __future__ import annotations

import logging
import os
import random
import shutil
import tempfile
from pathlib import Path
from types import TracebackType
from typing import Optional, Type, Union

from keystore_harness.errors import TempDirCleanupError

logger = logging.getLogger(__name__)

_SUFFIX_MAX = 0xFFFF


def _validate_prefix(prefix: str) -> str:
    if not isinstance(prefix, str):
        raise ValueError(f"prefix must be a string: {prefix!r}")
    separators = {os.sep, "/"}
    if os.altsep:
        separators.add(os.altsep)
    if any(sep in prefix for sep in separators):
        raise ValueError(f"prefix must not contain path separators: {prefix!r}")
    return prefix


class PathBuilder:
    """Immutable helper for appending segments to a path.

    `push` never mutates the builder; it returns a new one. Builders are
    `os.PathLike` so they can be handed to `open()` and friends directly.
    """

    __slots__ = ("_path",)

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self._path = Path(path)

    def push(self, segment: str) -> "PathBuilder":
        return PathBuilder(self._path / segment)

    @property
    def path(self) -> Path:
        return self._path

    def __fspath__(self) -> str:
        return os.fspath(self._path)

    def __str__(self) -> str:
        return str(self._path)

    def __repr__(self) -> str:
        return f"PathBuilder({str(self._path)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PathBuilder):
            return self._path == other._path
        if isinstance(other, (str, os.PathLike)):
            return self._path == Path(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._path)


class TempDir:
    """Owns a uniquely named directory under the system temp root."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._do_cleanup = True
        self._closed = False

    @classmethod
    def allocate(cls, prefix: str, *, rng: Optional[random.Random] = None) -> "TempDir":
        """Create `<tempdir>/<prefix>_NNNNN` and return its owner.

        The prefix must not contain path separators and the location cannot be
        chosen. Name collisions are retried; any other mkdir failure propagates.
        """

        prefix = _validate_prefix(prefix)
        rand = rng or random
        root = Path(tempfile.gettempdir())
        while True:
            candidate = root / f"{prefix}_{rand.randint(0, _SUFFIX_MAX):05}"
            try:
                candidate.mkdir()
            except FileExistsError:
                logger.debug("temp dir name taken, retrying: %s", candidate)
                continue
            logger.info("allocated temp dir %s", candidate)
            return cls(candidate.resolve())

    @property
    def path(self) -> Path:
        """Absolute path of the directory."""

        return self._path

    @property
    def cleanup_enabled(self) -> bool:
        return self._do_cleanup

    def build(self) -> PathBuilder:
        """Return a builder seeded with a copy of the path.

        `tdir.build().push("foo").push("bar")` reads as `<tdir.path>/foo/bar`.
        """

        return PathBuilder(self._path)

    def disable_cleanup(self) -> None:
        """Keep the directory after scope exit so a failing test can be inspected."""

        print(f"Disabled automatic cleanup for: {self._path}")
        logger.info("Disabled automatic cleanup for: %s", self._path)
        self._do_cleanup = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._do_cleanup:
            return
        try:
            shutil.rmtree(self._path)
        except OSError as e:
            raise TempDirCleanupError(f"Cannot delete temporary dir: {self._path}") from e
        logger.debug("removed temp dir %s", self._path)

    def __enter__(self) -> "TempDir":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"TempDir({str(self._path)!r}, cleanup={self._do_cleanup})"
