"""Tests for SuiteCollector."""

from __future__ import annotations

from dlp_impact.domain.enums import CheckStatus
from dlp_impact.measurement.check import KpiCheck
from dlp_impact.measurement.collector import SuiteCollector
from dlp_impact.measurement.suite import Orchestrator


def _boom():
    raise ConnectionError("API down")


class TestSuiteCollector:

    def _run(self, event_bus, scripted_probe, file_open_threshold, fake_clock):
        collector = SuiteCollector(event_bus)
        check = KpiCheck(
            "FileOpenDelay",
            scripted_probe([100.0, RuntimeError("sharing violation"), 120.0]),
            file_open_threshold,
            tick_count=3,
            event_bus=event_bus,
            sleep=fake_clock.sleep,
            clock=fake_clock,
        )
        orch = Orchestrator(event_bus=event_bus, clock=fake_clock)
        orch.add_check("FileOpenDelay", check)
        orch.add_check("PolicyCoverage", _boom)
        orch.run()
        return collector

    def test_collects_observations(
        self, event_bus, scripted_probe, file_open_threshold, fake_clock
    ) -> None:
        collector = self._run(event_bus, scripted_probe, file_open_threshold, fake_clock)
        log = collector.get_log("FileOpenDelay")
        assert log is not None
        assert log.num_observations == 3
        assert log.get_values() == [100.0, 120.0]
        assert log.failed_ticks() == [1]
        assert log.result is not None
        assert log.result.status is CheckStatus.MET
        assert not log.errored

    def test_records_errors(self, event_bus, scripted_probe, file_open_threshold, fake_clock) -> None:
        collector = self._run(event_bus, scripted_probe, file_open_threshold, fake_clock)
        log = collector.get_log("PolicyCoverage")
        assert log is not None
        assert log.errored
        assert log.error_type == "ConnectionError"
        assert log.error == "API down"
        assert collector.check_names() == ["FileOpenDelay", "PolicyCoverage"]

    def test_failure_context(
        self, event_bus, scripted_probe, file_open_threshold, fake_clock
    ) -> None:
        collector = self._run(event_bus, scripted_probe, file_open_threshold, fake_clock)
        context = collector.failure_context()
        assert context["FileOpenDelay"] == ["tick 2: scripted: sharing violation"]
        assert context["PolicyCoverage"] == ["check error (ConnectionError): API down"]

    def test_rerun_resets_log(
        self, event_bus, scripted_probe, file_open_threshold, fake_clock
    ) -> None:
        collector = SuiteCollector(event_bus)
        check = KpiCheck(
            "FileOpenDelay",
            scripted_probe([1.0]),
            file_open_threshold,
            tick_count=2,
            event_bus=event_bus,
            sleep=fake_clock.sleep,
            clock=fake_clock,
        )
        orch = Orchestrator(event_bus=event_bus, clock=fake_clock)
        orch.add_check("FileOpenDelay", check)
        orch.run()
        orch.run()
        assert collector.get_log("FileOpenDelay").num_observations == 2

    def test_clear(self, event_bus) -> None:
        collector = SuiteCollector(event_bus)
        collector._ensure_log("x")
        collector.clear()
        assert collector.get_all_logs() == {}
        assert collector.get_log("x") is None
