"""Tests for SuiteRun and the overall status rollup."""

from __future__ import annotations

import pytest

from dlp_impact.domain.aggregates import SuiteRun, compute_overall_status
from dlp_impact.domain.enums import CheckStatus, OverallStatus


def _results(result_factory, statuses):
    return [result_factory(f"check-{i}", s) for i, s in enumerate(statuses)]


class TestComputeOverallStatus:

    def test_empty_is_critical(self) -> None:
        assert compute_overall_status([]) is OverallStatus.CRITICAL

    def test_all_met_is_healthy(self, result_factory) -> None:
        results = _results(result_factory, [CheckStatus.MET] * 3)
        assert compute_overall_status(results) is OverallStatus.HEALTHY

    def test_exactly_eighty_percent_is_warning(self, result_factory) -> None:
        statuses = [CheckStatus.MET] * 4 + [CheckStatus.CRITICAL]
        assert compute_overall_status(_results(result_factory, statuses)) is OverallStatus.WARNING

    def test_two_of_three_is_warning(self, result_factory) -> None:
        statuses = [CheckStatus.MET, CheckStatus.ERRORED, CheckStatus.MET]
        assert compute_overall_status(_results(result_factory, statuses)) is OverallStatus.WARNING

    def test_exactly_sixty_percent_is_critical(self, result_factory) -> None:
        statuses = [CheckStatus.MET] * 3 + [CheckStatus.WARNING] * 2
        assert compute_overall_status(_results(result_factory, statuses)) is OverallStatus.CRITICAL

    def test_no_data_counts_as_not_met(self, result_factory) -> None:
        statuses = [CheckStatus.NO_DATA] * 2
        assert compute_overall_status(_results(result_factory, statuses)) is OverallStatus.CRITICAL


class TestSuiteRun:

    def test_append_keeps_order(self, result_factory) -> None:
        run = SuiteRun("s", started_at=0.0)
        for r in _results(result_factory, [CheckStatus.MET, CheckStatus.CRITICAL]):
            run.append(r)
        assert [r.name for r in run] == ["check-0", "check-1"]
        assert len(run) == 2

    def test_overall_status_none_until_finalized(self, result_factory) -> None:
        run = SuiteRun("s", started_at=0.0)
        run.append(result_factory("a", CheckStatus.MET))
        assert run.overall_status is None
        assert run.finalize(finished_at=4.0) is OverallStatus.HEALTHY
        assert run.overall_status is OverallStatus.HEALTHY
        assert run.duration == 4.0

    def test_finalized_run_is_read_only(self, result_factory) -> None:
        run = SuiteRun("s", started_at=0.0)
        run.finalize(finished_at=1.0)
        with pytest.raises(RuntimeError, match="finalized"):
            run.append(result_factory("a", CheckStatus.MET))
        with pytest.raises(RuntimeError, match="finalized"):
            run.finalize()

    def test_counts(self, result_factory) -> None:
        run = SuiteRun("s", started_at=0.0)
        statuses = [CheckStatus.MET, CheckStatus.ERRORED, CheckStatus.WARNING, CheckStatus.MET]
        for r in _results(result_factory, statuses):
            run.append(r)
        assert run.met_count == 2
        assert run.failed_count == 2
        assert run.errored_count == 1
        assert run.pass_rate == 0.5
        counts = run.status_counts()
        assert counts[CheckStatus.MET] == 2
        assert counts[CheckStatus.NO_DATA] == 0

    def test_get_result(self, result_factory) -> None:
        run = SuiteRun("s", started_at=0.0)
        run.append(result_factory("FileOpenDelay", CheckStatus.MET))
        assert run.get_result("FileOpenDelay") is not None
        assert run.get_result("missing") is None

    def test_dict_roundtrip(self, result_factory) -> None:
        run = SuiteRun("quick", started_at=100.0, metadata={"selected": ["a", "b"]})
        run.append(result_factory("a", CheckStatus.MET))
        run.append(result_factory("b", CheckStatus.ERRORED))
        run.finalize(finished_at=130.0)

        data = run.to_dict()
        assert data["overall_status"] == "critical"
        assert data["started_at_iso"].startswith("1970-01-01T00:01:40")

        restored = SuiteRun.from_dict(data)
        assert restored.check_results == run.check_results
        assert restored.overall_status is run.overall_status
        assert restored.finished_at == 130.0
        assert restored.metadata == {"selected": ["a", "b"]}

    def test_cancelled_flag(self, result_factory) -> None:
        run = SuiteRun("quick", started_at=0.0)
        run.append(result_factory("a", CheckStatus.MET))
        run.finalize(finished_at=1.0, cancelled=True)

        assert run.cancelled
        assert run.overall_status is OverallStatus.HEALTHY
        restored = SuiteRun.from_dict(run.to_dict())
        assert restored.cancelled

    def test_not_cancelled_by_default(self) -> None:
        run = SuiteRun("quick", started_at=0.0)
        run.finalize(finished_at=1.0)
        assert not run.cancelled
        data = run.to_dict()
        del data["cancelled"]
        assert not SuiteRun.from_dict(data).cancelled
