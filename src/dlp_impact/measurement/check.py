"""KPI check -- one Sampler + Aggregator + ThresholdEvaluator instantiation.

:class:`KpiCheck` is the unit the orchestrator runs.  Every built-in check
(file-open latency, agent memory, policy match rate, ...) is a
``KpiCheck`` with a different probe and threshold, and every one returns
the same :class:`CheckResult` shape.

The probe may expose ``setup()`` / ``teardown()`` hooks (see
:class:`~dlp_impact.probes.base.BaseProbe`); they bracket the sampling
window and ``teardown`` always runs.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from dlp_impact.domain.enums import CheckStatus, Statistic
from dlp_impact.domain.values import CheckResult, Threshold
from dlp_impact.infrastructure.event_bus import EventBus
from dlp_impact.measurement.aggregator import aggregate
from dlp_impact.measurement.evaluator import evaluate_summary
from dlp_impact.measurement.sampler import ProbeFn, Sampler

logger = logging.getLogger(__name__)


class KpiCheck:
    """A named KPI measurement with its threshold.

    Parameters
    ----------
    name:
        Check identifier, shown in reports.
    probe:
        Callable returning ``(value, outcome)``.
    threshold:
        Rule the chosen statistic is classified against.
    statistic:
        Which summary field to evaluate.  Defaults to the mean.
    tick_count / tick_interval / max_ticks:
        Sampling window; see :class:`Sampler`.
    timeout:
        Seconds after which sampling stops early, as if cancelled.  ``None``
        means no limit.
    requires:
        Configuration keys (credentials, endpoints) the check cannot run
        without.  Checked by the suite builder before anything runs.
    event_bus / cancel_event / sleep / clock:
        Passed through to the sampler.
    """

    def __init__(
        self,
        name: str,
        probe: ProbeFn,
        threshold: Threshold,
        *,
        statistic: Statistic = Statistic.MEAN,
        tick_count: int = 15,
        tick_interval: float = 1.0,
        max_ticks: int | None = 30,
        timeout: float | None = None,
        requires: Sequence[str] = (),
        event_bus: EventBus | None = None,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._name = name
        self._probe = probe
        self._threshold = threshold
        self._statistic = statistic
        self._tick_count = tick_count
        self._tick_interval = tick_interval
        self._max_ticks = max_ticks
        self._timeout = timeout
        self._requires = tuple(requires)
        self._event_bus = event_bus
        self._cancel_event = cancel_event
        self._sleep = sleep
        self._clock = clock

    # -- properties -----------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def threshold(self) -> Threshold:
        return self._threshold

    @property
    def statistic(self) -> Statistic:
        return self._statistic

    @property
    def probe(self) -> ProbeFn:
        return self._probe

    @property
    def requires(self) -> tuple[str, ...]:
        return self._requires

    def missing_requirements(self, settings: Mapping[str, Any]) -> list[str]:
        """Return the required keys that are absent or empty in *settings*."""
        return [key for key in self._requires if not settings.get(key)]

    # -- execution ------------------------------------------------------------

    def run(self, deadline: float | None = None) -> CheckResult:
        """Sample, aggregate and evaluate; return the check result.

        *deadline* is an absolute clock reading; without one the check's
        *timeout* (if any) sets it.  Exceptions from probe setup, or an empty
        sample caused by an immediate cancel, propagate to the caller; probe
        teardown runs either way.
        """
        started_at = self._clock()
        if deadline is None and self._timeout is not None:
            deadline = started_at + self._timeout
        sampler = Sampler(
            self._probe,
            self._tick_count,
            self._tick_interval,
            max_ticks=self._max_ticks,
            cancel_event=self._cancel_event,
            deadline=deadline,
            sleep=self._sleep,
            clock=self._clock,
            event_bus=self._event_bus,
            source_id=self._name,
        )

        setup = getattr(self._probe, "setup", None)
        teardown = getattr(self._probe, "teardown", None)
        try:
            if callable(setup):
                setup()
            observations = sampler.collect()
        finally:
            if callable(teardown):
                teardown()

        summary = aggregate(observations)
        status, observed = evaluate_summary(summary, self._threshold, self._statistic)
        finished_at = self._clock()

        if status is CheckStatus.NO_DATA:
            logger.warning(
                "%s: no successful observations out of %d (threshold %s)",
                self._name,
                summary.count,
                self._threshold.name,
            )
        else:
            logger.info(
                "%s: %s %.3f%s vs limit %.3f%s -> %s (%d/%d ok)",
                self._name,
                self._statistic.value,
                observed,
                self._threshold.unit,
                self._threshold.limit,
                self._threshold.unit,
                status.value,
                summary.success_count,
                summary.count,
            )

        return CheckResult(
            name=self._name,
            threshold_name=self._threshold.name,
            status=status,
            summary=summary,
            observed_value=observed,
            statistic=self._statistic,
            limit=self._threshold.limit,
            unit=self._threshold.unit,
            started_at=started_at,
            finished_at=finished_at,
            metadata={
                "probe": getattr(self._probe, "name", type(self._probe).__name__),
                "tick_count": self._tick_count,
                "tick_interval": self._tick_interval,
                "stopped_early": sampler.stopped_early,
                "timeout": self._timeout,
                "direction": self._threshold.direction.value,
            },
        )

    def __call__(self) -> CheckResult:
        return self.run()

    def __repr__(self) -> str:
        return (
            f"KpiCheck(name={self._name!r}, threshold={self._threshold.name!r}, "
            f"limit={self._threshold.limit})"
        )
