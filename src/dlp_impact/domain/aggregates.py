"""Aggregate roots for the DLP impact toolkit.

Aggregates enforce consistency boundaries.  External code should only
mutate a suite run through :meth:`SuiteRun.append` and
:meth:`SuiteRun.finalize`, never by reaching into its result list.

* ``SuiteRun`` -- ordered, append-only collection of check results with
  an overall health rollup.
"""

from __future__ import annotations

import datetime
import threading
import time
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from .enums import CheckStatus, OverallStatus
from .values import CheckResult

# Pass-rate bands for the overall rollup (strictly greater than).
HEALTHY_PASS_RATE = 0.8
WARNING_PASS_RATE = 0.6


def compute_overall_status(results: Sequence[CheckResult]) -> OverallStatus:
    """Derive the suite health from the fraction of MET results.

    ``> 80%`` is HEALTHY, ``> 60%`` is WARNING, anything else CRITICAL.
    An empty sequence is CRITICAL.
    """
    if not results:
        return OverallStatus.CRITICAL
    rate = sum(1 for r in results if r.is_met) / len(results)
    if rate > HEALTHY_PASS_RATE:
        return OverallStatus.HEALTHY
    if rate > WARNING_PASS_RATE:
        return OverallStatus.WARNING
    return OverallStatus.CRITICAL


class SuiteRun:
    """The orchestrator's aggregate for one execution of a check list.

    Results keep insertion order, which is execution order.  Once
    :meth:`finalize` has been called the run is read-only.
    """

    def __init__(
        self,
        name: str = "suite",
        started_at: float | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self._name = name
        self._results: list[CheckResult] = []
        self._started_at = time.time() if started_at is None else started_at
        self._finished_at: float | None = None
        self._overall_status: OverallStatus | None = None
        self._cancelled = False
        self._metadata: dict[str, Any] = dict(metadata or {})
        self._lock = threading.Lock()

    # -- properties -----------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def check_results(self) -> tuple[CheckResult, ...]:
        """Results in execution order."""
        return tuple(self._results)

    @property
    def started_at(self) -> float:
        return self._started_at

    @property
    def finished_at(self) -> float | None:
        return self._finished_at

    @property
    def is_finalized(self) -> bool:
        return self._finished_at is not None

    @property
    def cancelled(self) -> bool:
        """True when the run was interrupted before every check ran."""
        return self._cancelled

    @property
    def overall_status(self) -> OverallStatus | None:
        """Rollup status; ``None`` until the run is finalized."""
        return self._overall_status

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    # -- mutations ------------------------------------------------------------

    def append(self, result: CheckResult) -> None:
        """Record the result of one check.

        Raises ``RuntimeError`` once the run has been finalized.
        """
        with self._lock:
            if self._finished_at is not None:
                raise RuntimeError(f"SuiteRun {self._name!r} is already finalized")
            self._results.append(result)

    def finalize(
        self, finished_at: float | None = None, cancelled: bool = False
    ) -> OverallStatus:
        """Stamp the finish time and compute the overall status.

        A *cancelled* run is rolled up from the results it has.
        """
        with self._lock:
            if self._finished_at is not None:
                raise RuntimeError(f"SuiteRun {self._name!r} is already finalized")
            self._finished_at = time.time() if finished_at is None else finished_at
            self._cancelled = cancelled
            self._overall_status = compute_overall_status(self._results)
            return self._overall_status

    # -- derived counts -------------------------------------------------------

    @property
    def met_count(self) -> int:
        return sum(1 for r in self._results if r.is_met)

    @property
    def failed_count(self) -> int:
        """Checks that did not meet their threshold, errored ones included."""
        return len(self._results) - self.met_count

    @property
    def errored_count(self) -> int:
        return sum(1 for r in self._results if r.status is CheckStatus.ERRORED)

    @property
    def pass_rate(self) -> float:
        """Fraction of MET results, in [0, 1]."""
        if not self._results:
            return 0.0
        return self.met_count / len(self._results)

    @property
    def duration(self) -> float:
        if self._finished_at is None:
            return 0.0
        return max(0.0, self._finished_at - self._started_at)

    def status_counts(self) -> dict[CheckStatus, int]:
        """Number of results per status, in enum order."""
        counts = {status: 0 for status in CheckStatus}
        for r in self._results:
            counts[r.status] += 1
        return counts

    def get_result(self, name: str) -> CheckResult | None:
        """Return the result of the check called *name*, or ``None``."""
        for r in self._results:
            if r.name == name:
                return r
        return None

    # -- serialisation --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialise the run to a JSON-compatible dictionary."""
        iso = datetime.datetime.fromtimestamp(
            self._started_at, tz=datetime.UTC
        ).isoformat()
        return {
            "name": self._name,
            "started_at": self._started_at,
            "started_at_iso": iso,
            "finished_at": self._finished_at,
            "overall_status": (
                self._overall_status.value if self._overall_status is not None else None
            ),
            "pass_rate": self.pass_rate,
            "cancelled": self._cancelled,
            "metadata": dict(self._metadata),
            "checks": [r.to_dict() for r in self._results],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SuiteRun:
        """Rebuild a run from :meth:`to_dict` output."""
        run = cls(
            name=data.get("name", "suite"),
            started_at=data.get("started_at", 0.0),
            metadata=data.get("metadata", {}),
        )
        for item in data.get("checks", []):
            run.append(CheckResult.from_dict(item))
        if data.get("finished_at") is not None:
            run.finalize(
                finished_at=data["finished_at"], cancelled=bool(data.get("cancelled", False))
            )
        return run

    # -- dunder helpers -------------------------------------------------------

    def __iter__(self) -> Iterator[CheckResult]:
        return iter(tuple(self._results))

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        status = self._overall_status.value if self._overall_status else "open"
        return (
            f"SuiteRun(name={self._name!r}, checks={len(self._results)}, "
            f"status={status})"
        )
