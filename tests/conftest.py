"""Shared fixtures for the DLP impact test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from dlp_impact.domain.enums import CheckStatus, Direction, Outcome, Statistic
from dlp_impact.domain.values import CheckResult, Observation, Summary, Threshold
from dlp_impact.infrastructure.event_bus import EventBus

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Manual clock; ``sleep`` advances it instead of blocking."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedProbe:
    """Probe replaying a script of values.

    ``None`` in the script makes that tick report a failed outcome; an
    exception instance is raised on that tick.
    """

    name = "scripted"

    def __init__(self, script: Sequence[float | None | BaseException]) -> None:
        self._script = list(script)
        self.calls = 0
        self.setup_calls = 0
        self.teardown_calls = 0

    def setup(self) -> None:
        self.setup_calls += 1

    def teardown(self) -> None:
        self.teardown_calls += 1

    def __call__(self) -> tuple[float | None, Outcome]:
        item = self._script[self.calls % len(self._script)]
        self.calls += 1
        if isinstance(item, BaseException):
            raise item
        if item is None:
            return None, Outcome.FAILURE
        return float(item), Outcome.SUCCESS


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scripted_probe() -> Callable[[Sequence[float | None | Exception]], ScriptedProbe]:
    """Factory: ``scripted_probe([1.0, None, RuntimeError()])``."""
    return ScriptedProbe


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def file_open_threshold() -> Threshold:
    """FileOpenDelay guidance: under 500 ms."""
    return Threshold("FileOpenDelay", 500.0, Direction.LESS_THAN_IS_GOOD, unit="ms")


@pytest.fixture
def coverage_threshold() -> Threshold:
    """PolicyCoverage guidance: over 80 %."""
    return Threshold("PolicyCoverage", 80.0, Direction.GREATER_THAN_IS_GOOD, unit="%")


def make_observations(values: Sequence[float | None], start: float = 0.0) -> list[Observation]:
    """Observations one second apart; ``None`` becomes a failure."""
    out: list[Observation] = []
    for i, v in enumerate(values):
        if v is None:
            out.append(Observation.failure(start + i, tick=i, error="boom"))
        else:
            out.append(Observation(start + i, float(v), Outcome.SUCCESS, tick=i))
    return out


def make_result(
    name: str,
    status: CheckStatus,
    observed: float | None = 100.0,
    limit: float = 500.0,
) -> CheckResult:
    summary = None
    if status is not CheckStatus.ERRORED:
        if observed is None:
            summary = Summary(count=3, success_count=0, failure_count=3)
        else:
            summary = Summary(
                count=3, success_count=3, failure_count=0,
                mean=observed, min=observed, max=observed, median=observed, p95=observed,
            )
    return CheckResult(
        name=name,
        threshold_name=name,
        status=status,
        summary=summary,
        observed_value=observed if status is not CheckStatus.ERRORED else None,
        statistic=Statistic.MEAN,
        limit=limit,
        unit="ms",
        started_at=10.0,
        finished_at=12.5,
        error="RuntimeError: boom" if status is CheckStatus.ERRORED else "",
    )


@pytest.fixture
def observations_factory() -> Callable[..., list[Observation]]:
    return make_observations


@pytest.fixture
def result_factory() -> Callable[..., CheckResult]:
    return make_result
