"""File-operation latency probes.

Each probe times one file operation per tick and returns elapsed
milliseconds.  On a protected endpoint the DLP agent intercepts opens,
writes and copies, so these latencies are the user-visible cost of the
agent.

Scratch data lives in a private temporary directory created by
``setup()`` (inside *directory* when given) and removed by
``teardown()``; nothing the probes write outlives a check.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

from dlp_impact.domain.exceptions import ProbeFailure
from dlp_impact.probes.base import TimedProbe

logger = logging.getLogger(__name__)

DEFAULT_SIZE_BYTES = 1024 * 1024
_CHUNK = 64 * 1024


class _ScratchDirMixin:
    """Owns a temporary directory for the lifetime of one sampling window."""

    _directory: str
    _scratch: Path | None = None

    def _make_scratch(self) -> Path:
        self._scratch = Path(
            tempfile.mkdtemp(prefix="dlp-impact-", dir=self._directory or None)
        )
        return self._scratch

    def _remove_scratch(self) -> None:
        if self._scratch is not None:
            shutil.rmtree(self._scratch, ignore_errors=True)
            self._scratch = None

    def _require_scratch(self) -> Path:
        if self._scratch is None:
            raise ProbeFailure("probe used before setup()", probe=getattr(self, "name", ""))
        return self._scratch


def _write_file(path: Path, size_bytes: int) -> None:
    payload = os.urandom(min(size_bytes, _CHUNK))
    remaining = size_bytes
    with open(path, "wb") as fh:
        while remaining > 0:
            chunk = payload[:remaining]
            fh.write(chunk)
            remaining -= len(chunk)
        fh.flush()
        os.fsync(fh.fileno())


class FileOpenProbe(_ScratchDirMixin, TimedProbe):
    """Time opening and fully reading a file.

    With *path* the given file is read; otherwise a scratch file of
    *size_bytes* is created in *directory* during setup.
    """

    name = "file_open"

    def __init__(
        self,
        path: str = "",
        directory: str = "",
        size_bytes: int = DEFAULT_SIZE_BYTES,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__(timer)
        self._path = path
        self._directory = directory
        self._size_bytes = size_bytes
        self._target: Path | None = Path(path) if path else None

    def setup(self) -> None:
        if not self._path:
            self._target = self._make_scratch() / "open-target.bin"
            _write_file(self._target, self._size_bytes)

    def teardown(self) -> None:
        self._remove_scratch()
        if not self._path:
            self._target = None

    def _operation(self) -> None:
        if self._target is None:
            raise ProbeFailure("no file to open", probe=self.name)
        try:
            with open(self._target, "rb") as fh:
                while fh.read(_CHUNK):
                    pass
        except OSError as exc:
            raise ProbeFailure(f"cannot open {self._target}: {exc}", probe=self.name) from exc


class FileSaveProbe(_ScratchDirMixin, TimedProbe):
    """Time writing and syncing a new file of *size_bytes*."""

    name = "file_save"

    def __init__(
        self,
        directory: str = "",
        size_bytes: int = DEFAULT_SIZE_BYTES,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__(timer)
        self._directory = directory
        self._size_bytes = size_bytes
        self._counter = 0

    def setup(self) -> None:
        self._make_scratch()
        self._counter = 0

    def teardown(self) -> None:
        self._remove_scratch()

    def _operation(self) -> None:
        scratch = self._require_scratch()
        self._counter += 1
        target = scratch / f"save-{self._counter}.bin"
        try:
            _write_file(target, self._size_bytes)
        except OSError as exc:
            raise ProbeFailure(f"cannot write {target}: {exc}", probe=self.name) from exc
        finally:
            target.unlink(missing_ok=True)


class FileCopyProbe(_ScratchDirMixin, TimedProbe):
    """Time copying *source* (or a scratch file) to a new file."""

    name = "file_copy"

    def __init__(
        self,
        source: str = "",
        directory: str = "",
        size_bytes: int = DEFAULT_SIZE_BYTES,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__(timer)
        self._source_arg = source
        self._directory = directory
        self._size_bytes = size_bytes
        self._source: Path | None = None
        self._counter = 0

    def setup(self) -> None:
        scratch = self._make_scratch()
        self._counter = 0
        if self._source_arg:
            self._source = Path(self._source_arg)
        else:
            self._source = scratch / "copy-source.bin"
            _write_file(self._source, self._size_bytes)

    def teardown(self) -> None:
        self._remove_scratch()
        self._source = None

    def _operation(self) -> None:
        scratch = self._require_scratch()
        if self._source is None:
            raise ProbeFailure("no source file", probe=self.name)
        self._counter += 1
        target = scratch / f"copy-{self._counter}.bin"
        try:
            shutil.copyfile(self._source, target)
        except OSError as exc:
            raise ProbeFailure(
                f"cannot copy {self._source}: {exc}", probe=self.name
            ) from exc
        finally:
            target.unlink(missing_ok=True)
