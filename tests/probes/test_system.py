"""Tests for the psutil-backed process probes."""

from __future__ import annotations

from types import SimpleNamespace

import psutil
import pytest

from dlp_impact.domain.exceptions import ProbeFailure
from dlp_impact.probes import system
from dlp_impact.probes.system import CpuUsageProbe, DiskIoProbe, MemoryUsageProbe, find_processes

MIB = 1024 * 1024


class FakeProcess:
    def __init__(self, pid: int, name: str, cpu: float = 0.0, rss: int = 0, io: int = 0) -> None:
        self.pid = pid
        self.info = {"name": name}
        self.cpu = cpu
        self.rss = rss
        self.io = io
        self.denied = False

    def cpu_percent(self, interval=None) -> float:
        if self.denied:
            raise psutil.AccessDenied(self.pid)
        return self.cpu

    def memory_info(self):
        if self.denied:
            raise psutil.AccessDenied(self.pid)
        return SimpleNamespace(rss=self.rss)

    def io_counters(self):
        return SimpleNamespace(read_bytes=self.io, write_bytes=self.io)


@pytest.fixture
def processes(monkeypatch):
    procs: list[FakeProcess] = []
    monkeypatch.setattr(system.psutil, "process_iter", lambda attrs=None: list(procs))
    monkeypatch.setattr(system.psutil, "cpu_count", lambda: 4)
    return procs


class TestFindProcesses:

    def test_case_insensitive(self, processes) -> None:
        processes.extend([FakeProcess(1, "MsSense.exe"), FakeProcess(2, "explorer.exe")])
        assert [p.pid for p in find_processes(["mssense.exe"])] == [1]


class TestCpuUsageProbe:

    def test_sums_and_normalises(self, processes) -> None:
        processes.extend([FakeProcess(1, "agent", cpu=10.0), FakeProcess(2, "agent", cpu=6.0)])
        probe = CpuUsageProbe(["agent"])
        probe.setup()
        assert probe()[0] == pytest.approx(4.0)

    def test_no_agent_fails(self, processes) -> None:
        probe = CpuUsageProbe(["agent"])
        probe.setup()
        with pytest.raises(ProbeFailure, match="no agent process"):
            probe()

    def test_process_exit_drops_tracking(self, processes) -> None:
        proc = FakeProcess(1, "agent", cpu=8.0)
        processes.append(proc)
        probe = CpuUsageProbe(["agent"])
        probe.setup()
        processes.clear()
        processes.append(FakeProcess(2, "agent", cpu=4.0))
        assert probe()[0] == pytest.approx(1.0)

    def test_system_wide(self, processes, monkeypatch) -> None:
        monkeypatch.setattr(system.psutil, "cpu_percent", lambda interval=None: 37.5)
        probe = CpuUsageProbe()
        probe.setup()
        assert probe()[0] == 37.5


class TestMemoryUsageProbe:

    def test_rss_in_mb(self, processes) -> None:
        processes.extend([FakeProcess(1, "agent", rss=100 * MIB), FakeProcess(2, "agent", rss=50 * MIB)])
        assert MemoryUsageProbe(["agent"])()[0] == pytest.approx(150.0)

    def test_all_denied_fails(self, processes) -> None:
        proc = FakeProcess(1, "agent", rss=MIB)
        proc.denied = True
        processes.append(proc)
        with pytest.raises(ProbeFailure, match="not readable"):
            MemoryUsageProbe(["agent"])()


class TestDiskIoProbe:

    def test_rate_since_previous_tick(self, processes) -> None:
        proc = FakeProcess(1, "agent", io=0)
        processes.append(proc)
        times = iter([0.0, 2.0, 4.0])
        probe = DiskIoProbe(["agent"], clock=lambda: next(times))
        probe.setup()
        proc.io = 2 * MIB  # read + write = 4 MiB
        assert probe()[0] == pytest.approx(2.0)
        proc.io = 3 * MIB
        assert probe()[0] == pytest.approx(1.0)

    def test_missing_baseline_fails_first_tick(self, processes) -> None:
        times = iter([0.0, 1.0, 2.0])
        probe = DiskIoProbe(["agent"], clock=lambda: next(times))
        probe.setup()
        processes.append(FakeProcess(1, "agent", io=MIB))
        with pytest.raises(ProbeFailure, match="baseline"):
            probe()
        assert probe()[0] == 0.0
