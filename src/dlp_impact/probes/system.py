"""Process and host resource probes backed by ``psutil``.

The agent-scoped probes account CPU, memory and disk I/O to the processes
whose executable name matches one of ``process_names`` (case-insensitive).
A tick on which no agent process is running fails rather than reporting
zero, so an absent agent shows up as NO_DATA, not as a perfect score.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable

import psutil

from dlp_impact.domain.exceptions import ProbeFailure
from dlp_impact.probes.base import BaseProbe

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024


def find_processes(process_names: Iterable[str]) -> list[psutil.Process]:
    """Running processes whose name matches one of *process_names*."""
    wanted = {n.lower() for n in process_names}
    found: list[psutil.Process] = []
    for proc in psutil.process_iter(["name"]):
        name = (proc.info.get("name") or "").lower()
        if name in wanted:
            found.append(proc)
    return found


class CpuUsageProbe(BaseProbe):
    """CPU percentage used by the agent processes, or by the whole host.

    With *process_names* the value is the summed per-process CPU divided
    by the logical CPU count, so 100 means every core is saturated.
    Without it the value is the system-wide CPU percentage.
    """

    name = "cpu_usage"
    unit = "%"

    def __init__(self, process_names: Iterable[str] = ()) -> None:
        self._process_names = tuple(process_names)
        self._tracked: dict[int, psutil.Process] = {}
        self._cpu_count = psutil.cpu_count() or 1

    def setup(self) -> None:
        # cpu_percent(None) measures since the previous call; prime it.
        if self._process_names:
            self._refresh()
        else:
            psutil.cpu_percent(interval=None)

    def teardown(self) -> None:
        self._tracked.clear()

    def _refresh(self) -> list[psutil.Process]:
        current = {p.pid: p for p in find_processes(self._process_names)}
        for pid, proc in current.items():
            if pid not in self._tracked:
                try:
                    proc.cpu_percent(interval=None)
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
                self._tracked[pid] = proc
        for pid in list(self._tracked):
            if pid not in current:
                del self._tracked[pid]
        return list(self._tracked.values())

    def _measure(self) -> float:
        if not self._process_names:
            return float(psutil.cpu_percent(interval=None))

        procs = self._refresh()
        if not procs:
            raise ProbeFailure(
                f"no agent process running ({', '.join(self._process_names)})",
                probe=self.name,
            )
        total = 0.0
        for proc in procs:
            try:
                total += proc.cpu_percent(interval=None)
            except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
                logger.debug("cpu_usage: skipping pid %d: %s", proc.pid, exc)
        return total / self._cpu_count


class MemoryUsageProbe(BaseProbe):
    """Resident memory (working set) of the agent processes, in MB."""

    name = "memory_usage"
    unit = "MB"

    def __init__(self, process_names: Iterable[str]) -> None:
        self._process_names = tuple(process_names)

    def _measure(self) -> float:
        procs = find_processes(self._process_names)
        if not procs:
            raise ProbeFailure(
                f"no agent process running ({', '.join(self._process_names)})",
                probe=self.name,
            )
        total = 0
        readable = 0
        for proc in procs:
            try:
                total += proc.memory_info().rss
                readable += 1
            except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
                logger.debug("memory_usage: skipping pid %d: %s", proc.pid, exc)
        if readable == 0:
            raise ProbeFailure("agent process memory is not readable", probe=self.name)
        return total / _MIB


class DiskIoProbe(BaseProbe):
    """Disk throughput of the agent processes in MB/s since the previous tick."""

    name = "disk_io"
    unit = "MB/s"

    def __init__(
        self,
        process_names: Iterable[str],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._process_names = tuple(process_names)
        self._clock = clock
        self._last_bytes: int | None = None
        self._last_time = 0.0

    def _read_bytes(self) -> int:
        procs = find_processes(self._process_names)
        if not procs:
            raise ProbeFailure(
                f"no agent process running ({', '.join(self._process_names)})",
                probe=self.name,
            )
        total = 0
        for proc in procs:
            try:
                counters = proc.io_counters()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
                logger.debug("disk_io: skipping pid %d: %s", proc.pid, exc)
                continue
            total += counters.read_bytes + counters.write_bytes
        return total

    def setup(self) -> None:
        try:
            self._last_bytes = self._read_bytes()
        except ProbeFailure:
            self._last_bytes = None
        self._last_time = self._clock()

    def teardown(self) -> None:
        self._last_bytes = None

    def _measure(self) -> float:
        now = self._clock()
        current = self._read_bytes()
        previous, previous_time = self._last_bytes, self._last_time
        self._last_bytes, self._last_time = current, now
        if previous is None:
            raise ProbeFailure("no disk I/O baseline yet", probe=self.name)
        elapsed = now - previous_time
        if elapsed <= 0:
            raise ProbeFailure("no time elapsed since previous tick", probe=self.name)
        # counters reset when a process restarts
        delta = max(0, current - previous)
        return delta / _MIB / elapsed
