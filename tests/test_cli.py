"""Tests for the command-line interface."""

from __future__ import annotations

import json
import signal

import pytest

from dlp_impact.cli import main
from dlp_impact.domain.aggregates import SuiteRun
from dlp_impact.domain.enums import CheckStatus
from dlp_impact.presentation.export import export_json


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as info:
        main(argv)
    return info.value.code


@pytest.fixture
def save_config(tmp_path):
    work = tmp_path / "work"
    work.mkdir()
    path = tmp_path / "suite.yaml"
    path.write_text(
        "checks: [FileSaveDelay]\n"
        "sampling:\n"
        "  tick_count: 1\n"
        "  tick_interval: 0.01\n"
        "targets:\n"
        f"  work_dir: {work}\n"
        "  file_size_bytes: 512\n",
        encoding="utf-8",
    )
    return path


class TestTopLevel:

    def test_version(self, capsys) -> None:
        assert _exit_code(["--version"]) == 0
        assert capsys.readouterr().out.startswith("dlp-impact ")

    def test_no_command_prints_help(self, capsys) -> None:
        assert _exit_code([]) == 0
        assert "usage:" in capsys.readouterr().out

    def test_info(self, capsys) -> None:
        assert _exit_code(["--plain", "info"]) == 0
        out = capsys.readouterr().out
        assert "Monitoring Modes:" in out
        assert "quick -- FileOpenDelay, AgentCpuUsage, AgentMemoryUsage" in out
        assert "PolicyCoverage" in out
        assert "Sampling defaults: 15 samples" in out


class TestCheckCommand:

    def test_unknown_check(self, capsys) -> None:
        assert _exit_code(["--plain", "check", "NoSuchCheck"]) == 1
        assert "Unknown check" in capsys.readouterr().err

    def test_invalid_samples(self, capsys) -> None:
        assert _exit_code(["check", "FileOpenDelay", "--samples", "0"]) == 1
        assert "invalid configuration" in capsys.readouterr().err

    def test_missing_config_file(self, tmp_path, capsys) -> None:
        assert _exit_code(["check", "FileOpenDelay", "--config", str(tmp_path / "no.yaml")]) == 1
        assert "invalid configuration" in capsys.readouterr().err

    def test_missing_host(self, capsys) -> None:
        assert _exit_code(["--plain", "check", "NetworkLatency"]) == 1
        assert "targets.host" in capsys.readouterr().err

    def test_runs_single_check(self, save_config, capsys) -> None:
        assert _exit_code(["--plain", "check", "FileSaveDelay", "--config", str(save_config)]) == 0
        out = capsys.readouterr().out
        assert "-> FileSaveDelay ..." in out
        assert "=== Check: FileSaveDelay ===" in out


class TestSuiteCommand:

    def test_mode_and_checks_are_exclusive(self, capsys) -> None:
        assert _exit_code(["suite", "--mode", "quick", "--checks", "FileOpenDelay"]) == 2

    def test_runs_and_exports(self, save_config, tmp_path, capsys) -> None:
        export_dir = tmp_path / "reports"
        code = _exit_code(
            ["--plain", "suite", "--config", str(save_config),
             "--non-interactive", "--export", str(export_dir)]
        )
        assert code == 0
        out = capsys.readouterr().out
        assert "FileSaveDelay" in out
        assert "Overall:" in out
        suffixes = sorted(p.suffix for p in export_dir.iterdir())
        assert suffixes == [".csv", ".csv", ".html", ".json"]

    def test_bad_threshold_override(self, tmp_path, capsys) -> None:
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"threshold_overrides": {"Nope": 5}}), encoding="utf-8")
        assert _exit_code(["suite", "--config", str(path), "--non-interactive"]) == 1
        assert "Unknown threshold" in capsys.readouterr().err


class TestCancellation:

    @pytest.fixture
    def two_check_config(self, tmp_path):
        work = tmp_path / "work"
        work.mkdir()
        path = tmp_path / "suite.yaml"
        path.write_text(
            "checks: [FileSaveDelay, FileOpenDelay]\n"
            "sampling:\n"
            "  tick_count: 3\n"
            "  tick_interval: 0.01\n"
            "targets:\n"
            f"  work_dir: {work}\n"
            "  file_size_bytes: 512\n",
            encoding="utf-8",
        )
        return path

    @pytest.fixture
    def ctrl_c_on_second_write(self, monkeypatch):
        from dlp_impact.probes import filesystem

        real_write = filesystem._write_file
        calls = []

        def write(path, size_bytes):
            calls.append(path)
            if len(calls) == 2:
                signal.raise_signal(signal.SIGINT)
            real_write(path, size_bytes)

        monkeypatch.setattr(filesystem, "_write_file", write)
        return calls

    def test_ctrl_c_reports_partial_run(
        self, two_check_config, ctrl_c_on_second_write, tmp_path, capsys
    ) -> None:
        export_dir = tmp_path / "reports"
        code = _exit_code(
            ["--plain", "suite", "--config", str(two_check_config),
             "--non-interactive", "--export", str(export_dir)]
        )

        assert code == 130
        captured = capsys.readouterr()
        assert "FileSaveDelay" in captured.out
        assert "-> FileOpenDelay" not in captured.out
        assert "Cancelled" in captured.out
        assert "Cancelling" in captured.err
        assert len(ctrl_c_on_second_write) == 2

        reports = sorted(export_dir.iterdir())
        assert sorted(p.suffix for p in reports) == [".csv", ".csv", ".html", ".json"]
        data = json.loads(next(p for p in reports if p.suffix == ".json").read_text(encoding="utf-8"))
        assert data["cancelled"] is True
        assert [r["name"] for r in data["checks"]] == ["FileSaveDelay"]

    def test_sigint_handler_restored(self, two_check_config, ctrl_c_on_second_write) -> None:
        before = signal.getsignal(signal.SIGINT)
        _exit_code(["--plain", "suite", "--config", str(two_check_config), "--non-interactive"])
        assert signal.getsignal(signal.SIGINT) is before

    def test_single_check_cancel_exits_130(
        self, save_config, monkeypatch, capsys
    ) -> None:
        from dlp_impact.probes import filesystem

        real_write = filesystem._write_file

        def write(path, size_bytes):
            signal.raise_signal(signal.SIGINT)
            real_write(path, size_bytes)

        monkeypatch.setattr(filesystem, "_write_file", write)
        code = _exit_code(["--plain", "check", "FileSaveDelay", "--config", str(save_config)])
        assert code == 130
        out = capsys.readouterr().out
        assert "=== Check: FileSaveDelay ===" in out
        assert "Cancelled" in out


class TestReportCommand:

    @pytest.fixture
    def report_path(self, tmp_path, result_factory):
        run = SuiteRun(name="nightly", started_at=0.0)
        run.append(result_factory("FileOpenDelay", CheckStatus.MET))
        run.append(result_factory("AgentCpuUsage", CheckStatus.WARNING))
        run.finalize(finished_at=5.0)
        path = tmp_path / "run.json"
        export_json(run, path)
        return path

    def test_summary(self, report_path, capsys) -> None:
        assert _exit_code(["report", "--input", str(report_path), "--format", "summary"]) == 0
        out = capsys.readouterr().out
        assert "=== nightly ===" in out
        assert "Met: 1/2 (50.0%)" in out

    def test_json(self, report_path, capsys) -> None:
        assert _exit_code(["report", "--input", str(report_path), "--format", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["overall_status"] == "critical"

    def test_table(self, report_path, capsys) -> None:
        assert _exit_code(["--plain", "report", "--input", str(report_path)]) == 0
        assert "AgentCpuUsage" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys) -> None:
        assert _exit_code(["report", "--input", str(tmp_path / "none.json")]) == 1
        assert "file not found" in capsys.readouterr().err
