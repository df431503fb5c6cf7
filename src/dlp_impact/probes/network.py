"""Network probes: TCP connect latency and interface throughput."""

from __future__ import annotations

import logging
import socket
import time
from collections.abc import Callable

import psutil

from dlp_impact.domain.exceptions import ProbeFailure
from dlp_impact.probes.base import BaseProbe, TimedProbe

logger = logging.getLogger(__name__)


class TcpLatencyProbe(TimedProbe):
    """Milliseconds to complete a TCP handshake with *host*:*port*."""

    name = "tcp_latency"

    def __init__(
        self,
        host: str,
        port: int = 443,
        timeout: float = 2.0,
        timer: Callable[[], float] = time.perf_counter,
        connect: Callable[..., socket.socket] = socket.create_connection,
    ) -> None:
        super().__init__(timer)
        self._host = host
        self._port = port
        self._timeout = timeout
        self._connect = connect

    def _operation(self) -> None:
        try:
            conn = self._connect((self._host, self._port), timeout=self._timeout)
        except OSError as exc:
            raise ProbeFailure(
                f"connect to {self._host}:{self._port} failed: {exc}", probe=self.name
            ) from exc
        conn.close()


class NetworkThroughputProbe(BaseProbe):
    """Traffic on *interface* (or all interfaces) in Mbps since the previous tick.

    The first tick only has a baseline taken in ``setup()``; every tick
    measures sent plus received bytes over the elapsed time.
    """

    name = "network_throughput"
    unit = "Mbps"

    def __init__(
        self,
        interface: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interface = interface
        self._clock = clock
        self._last_bytes: int | None = None
        self._last_time = 0.0

    def _read_bytes(self) -> int:
        if self._interface:
            per_nic = psutil.net_io_counters(pernic=True)
            counters = per_nic.get(self._interface)
            if counters is None:
                raise ProbeFailure(
                    f"unknown network interface {self._interface!r}; "
                    f"available: {sorted(per_nic)}",
                    probe=self.name,
                )
        else:
            counters = psutil.net_io_counters()
            if counters is None:
                raise ProbeFailure("no network interfaces", probe=self.name)
        return counters.bytes_sent + counters.bytes_recv

    def setup(self) -> None:
        self._last_bytes = self._read_bytes()
        self._last_time = self._clock()

    def teardown(self) -> None:
        self._last_bytes = None

    def _measure(self) -> float:
        now = self._clock()
        current = self._read_bytes()
        previous, previous_time = self._last_bytes, self._last_time
        self._last_bytes, self._last_time = current, now
        if previous is None:
            raise ProbeFailure("no throughput baseline yet", probe=self.name)
        elapsed = now - previous_time
        if elapsed <= 0:
            raise ProbeFailure("no time elapsed since previous tick", probe=self.name)
        delta = max(0, current - previous)
        return delta * 8 / 1_000_000 / elapsed
