"""Orchestrator -- run named checks in order and roll them up.

:class:`Orchestrator` holds an ordered set of ``(name, check_fn)`` pairs.
:meth:`Orchestrator.run` invokes them one after another and collects a
:class:`SuiteRun`.  A check that raises is recorded as an ERRORED result
and the suite moves on to the next entry; only configuration errors (no
checks, unknown check names) abort the run.

Setting the cancel event (or a ``KeyboardInterrupt`` inside a check) skips
the checks not yet started; the run is still finalized and returned with
``cancelled`` set, so what ran can be reported.

Usage::

    orchestrator = Orchestrator(name="quick")
    orchestrator.add_check("FileOpenDelay", file_open_check)
    orchestrator.add_check("AgentMemoryUsage", memory_check)
    run = orchestrator.run()
    print(orchestrator.summary())
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence

from dlp_impact.domain.aggregates import SuiteRun, compute_overall_status
from dlp_impact.domain.events import (
    CheckCompleted,
    CheckErrored,
    CheckStarted,
    DomainEvent,
    SuiteCompleted,
    SuiteStarted,
)
from dlp_impact.domain.exceptions import OrchestrationError
from dlp_impact.domain.values import CheckResult
from dlp_impact.infrastructure.event_bus import EventBus

logger = logging.getLogger(__name__)

CheckFn = Callable[[], CheckResult]

__all__ = ["CheckFn", "Orchestrator", "compute_overall_status"]


class Orchestrator:
    """Sequential runner for a named, ordered list of checks.

    Parameters
    ----------
    name:
        Descriptive name for the suite, carried into the :class:`SuiteRun`.
    event_bus:
        Optional bus receiving suite and check lifecycle events.
    clock:
        Injectable time source.
    cancel_event:
        When set, the checks not yet started are skipped and the run is
        finalized as cancelled.  A ``KeyboardInterrupt`` raised inside a
        check sets it too.
    """

    def __init__(
        self,
        name: str = "DLP Impact Suite",
        event_bus: EventBus | None = None,
        clock: Callable[[], float] = time.time,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._name = name
        self._event_bus = event_bus
        self._clock = clock
        self._cancel_event = cancel_event
        self._interrupted = False
        self._checks: OrderedDict[str, CheckFn] = OrderedDict()
        self._thresholds: dict[str, str] = {}
        self._last_run: SuiteRun | None = None

    # -- mutation -------------------------------------------------------------

    def add_check(self, name: str, check_fn: CheckFn, threshold_name: str = "") -> None:
        """Register *check_fn* under *name*.

        *threshold_name* is only used to label the synthetic result if the
        check errors; :class:`KpiCheck` instances supply it automatically.

        Raises
        ------
        ValueError
            If a check with the same name is already registered.
        """
        if name in self._checks:
            raise ValueError(
                f"Check with name {name!r} is already registered. "
                f"Use remove_check() first if you want to replace it."
            )
        self._checks[name] = check_fn
        threshold = getattr(check_fn, "threshold", None)
        self._thresholds[name] = threshold_name or getattr(threshold, "name", "")

    def remove_check(self, name: str) -> bool:
        """Remove the check called *name*; ``True`` if one was removed."""
        if name in self._checks:
            del self._checks[name]
            self._thresholds.pop(name, None)
            return True
        return False

    # -- query ----------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def check_names(self) -> list[str]:
        """Registered check names in execution order."""
        return list(self._checks.keys())

    def get_check(self, name: str) -> CheckFn | None:
        return self._checks.get(name)

    @property
    def cancelled(self) -> bool:
        """True once the cancel event is set or a check was interrupted."""
        if self._interrupted:
            return True
        return self._cancel_event is not None and self._cancel_event.is_set()

    @property
    def last_run(self) -> SuiteRun | None:
        """The most recent :class:`SuiteRun`, or ``None``."""
        return self._last_run

    # -- execution ------------------------------------------------------------

    def run(self, selected: Sequence[str] | None = None) -> SuiteRun:
        """Run the registered checks (or the *selected* subset) in order.

        *selected* keeps its own order.  Results always come back in the
        order the checks ran.

        Raises
        ------
        OrchestrationError
            If no checks are registered, *selected* is empty, or it names
            a check that is not registered.  Nothing has run at that point.
        """
        if not self._checks:
            raise OrchestrationError(f"{self._name}: no checks registered")

        if selected is None:
            names = list(self._checks.keys())
        else:
            names = list(selected)
            if not names:
                raise OrchestrationError(f"{self._name}: no checks selected")
            unknown = [n for n in names if n not in self._checks]
            if unknown:
                raise OrchestrationError(
                    f"{self._name}: unknown check(s) {unknown}; "
                    f"available: {self.check_names}",
                    details={"unknown": unknown},
                )

        suite_run = SuiteRun(
            name=self._name,
            started_at=self._clock(),
            metadata={"selected": names},
        )
        logger.info("%s: running %d checks", self._name, len(names))
        self._publish(SuiteStarted(source_id=self._name, suite_name=self._name, check_names=tuple(names)))

        self._interrupted = False
        for index, check_name in enumerate(names):
            if self.cancelled:
                logger.warning(
                    "%s: cancelled; skipping %d remaining check(s): %s",
                    self._name,
                    len(names) - index,
                    ", ".join(names[index:]),
                )
                break
            suite_run.append(self._run_one(index, len(names), check_name))

        status = suite_run.finalize(finished_at=self._clock(), cancelled=self.cancelled)
        logger.info(
            "%s: finished in %.2fs -- %d/%d checks met, overall %s",
            self._name,
            suite_run.duration,
            suite_run.met_count,
            len(suite_run),
            status.value,
        )
        self._publish(
            SuiteCompleted(
                source_id=self._name,
                suite_name=self._name,
                overall_status=status,
                met_count=suite_run.met_count,
                total_count=len(suite_run),
                cancelled=suite_run.cancelled,
            )
        )
        self._last_run = suite_run
        return suite_run

    def _run_one(self, index: int, total: int, check_name: str) -> CheckResult:
        check_fn = self._checks[check_name]
        logger.info("%s: [%d/%d] %s", self._name, index + 1, total, check_name)
        self._publish(CheckStarted(source_id=self._name, check_name=check_name, index=index))

        started_at = self._clock()
        try:
            result = check_fn()
        except KeyboardInterrupt:
            logger.warning("%s: interrupted during %r", self._name, check_name)
            self._interrupted = True
            if self._cancel_event is not None:
                self._cancel_event.set()
            self._publish(
                CheckErrored(
                    source_id=self._name,
                    check_name=check_name,
                    error="interrupted",
                    error_type="KeyboardInterrupt",
                )
            )
            return CheckResult.errored(
                name=check_name,
                threshold_name=self._thresholds.get(check_name, ""),
                error="KeyboardInterrupt: interrupted",
                started_at=started_at,
                finished_at=self._clock(),
            )
        except Exception as exc:
            logger.exception(
                "%s: check %r (threshold %s) failed; continuing with remaining checks",
                self._name,
                check_name,
                self._thresholds.get(check_name) or "n/a",
            )
            error = f"{type(exc).__name__}: {exc}"
            self._publish(
                CheckErrored(
                    source_id=self._name,
                    check_name=check_name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            )
            return CheckResult.errored(
                name=check_name,
                threshold_name=self._thresholds.get(check_name, ""),
                error=error,
                started_at=started_at,
                finished_at=self._clock(),
            )

        self._publish(CheckCompleted(source_id=self._name, check_name=check_name, result=result))
        return result

    def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)

    # -- summary generation ---------------------------------------------------

    def summary(self) -> str:
        """Human-readable table of the most recent run."""
        if self._last_run is None:
            return f"=== {self._name} ===\nNo results available. Run the suite first."
        return self.format_summary(self._last_run)

    @staticmethod
    def format_summary(run: SuiteRun) -> str:
        """Plain-text table of *run*, one line per check plus a rollup."""
        name_w = max([len("Check")] + [len(r.name) for r in run])
        lines = [
            f"=== {run.name} ===",
            "",
            f"{'Check':<{name_w}}  {'Status':<9}  {'Observed':>12}  {'Limit':>10}  {'OK/Total':>8}",
            "-" * (name_w + 49),
        ]
        for r in run:
            observed = f"{r.observed_value:.2f}{r.unit}" if r.observed_value is not None else "n/a"
            limit = f"{r.limit:g}{r.unit}" if r.limit is not None else "n/a"
            counts = (
                f"{r.summary.success_count}/{r.summary.count}" if r.summary is not None else "-"
            )
            lines.append(
                f"{r.name:<{name_w}}  {r.status.value:<9}  {observed:>12}  {limit:>10}  {counts:>8}"
            )
        lines.append("-" * (name_w + 49))
        lines.append(
            f"Met: {run.met_count}/{len(run)} ({run.pass_rate:.1%}) | "
            f"Errored: {run.errored_count} | "
            f"Overall: {run.overall_status.value if run.overall_status else 'open'} | "
            f"Elapsed: {run.duration:.2f}s"
            + (" | Cancelled" if run.cancelled else "")
        )
        return "\n".join(lines)

    # -- dunder helpers -------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"Orchestrator(name={self._name!r}, checks={len(self._checks)}, "
            f"has_results={self._last_run is not None})"
        )

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: object) -> bool:
        return name in self._checks
