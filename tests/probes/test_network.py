"""Tests for the network probes."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from dlp_impact.domain.exceptions import ProbeFailure
from dlp_impact.probes import network
from dlp_impact.probes.network import NetworkThroughputProbe, TcpLatencyProbe


class _Conn:
    closed = False

    def close(self) -> None:
        self.closed = True


class TestTcpLatencyProbe:

    def test_handshake_time(self) -> None:
        conn = _Conn()
        calls = []

        def connect(address, timeout):
            calls.append((address, timeout))
            return conn

        ticks = iter([10.0, 10.042])
        probe = TcpLatencyProbe("dlp.example.com", timer=lambda: next(ticks), connect=connect)
        value, _ = probe()
        assert value == pytest.approx(42.0)
        assert calls == [(("dlp.example.com", 443), 2.0)]
        assert conn.closed

    def test_connect_failure(self) -> None:
        def connect(address, timeout):
            raise ConnectionRefusedError("refused")

        probe = TcpLatencyProbe("localhost", port=1, connect=connect)
        with pytest.raises(ProbeFailure, match="localhost:1"):
            probe()


def _counters(sent: int, recv: int) -> SimpleNamespace:
    return SimpleNamespace(bytes_sent=sent, bytes_recv=recv)


class TestNetworkThroughputProbe:

    def test_mbps(self, monkeypatch) -> None:
        readings = iter([_counters(0, 0), _counters(500_000, 500_000)])
        monkeypatch.setattr(network.psutil, "net_io_counters", lambda pernic=False: next(readings))
        times = iter([0.0, 2.0])
        probe = NetworkThroughputProbe(clock=lambda: next(times))
        probe.setup()
        assert probe()[0] == pytest.approx(4.0)

    def test_named_interface(self, monkeypatch) -> None:
        readings = iter([
            {"eth0": _counters(0, 0)},
            {"eth0": _counters(125_000, 0)},
        ])
        monkeypatch.setattr(network.psutil, "net_io_counters", lambda pernic=False: next(readings))
        times = iter([0.0, 1.0])
        probe = NetworkThroughputProbe("eth0", clock=lambda: next(times))
        probe.setup()
        assert probe()[0] == pytest.approx(1.0)

    def test_unknown_interface(self, monkeypatch) -> None:
        monkeypatch.setattr(
            network.psutil, "net_io_counters", lambda pernic=False: {"lo": _counters(0, 0)}
        )
        with pytest.raises(ProbeFailure, match="unknown network interface"):
            NetworkThroughputProbe("wlan9").setup()
