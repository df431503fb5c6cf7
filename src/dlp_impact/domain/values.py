"""Value objects for the DLP impact toolkit.

All types here are frozen dataclasses -- immutable, compared by value.
They represent observations, summaries, threshold rules, and check
results that have no identity beyond their content.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .enums import CheckStatus, Direction, Outcome, Statistic

# Warning boundary ratio for GREATER_THAN_IS_GOOD thresholds.
GREATER_WARNING_RATIO = 0.8

DEFAULT_WARNING_MULTIPLIER = 2.0


# ---------------------------------------------------------------------------
# Observation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Observation:
    """One measurement taken by a probe at a point in time.

    A FAILURE observation carries ``value=None`` -- failed probes never
    contribute a number to the statistics.
    """

    timestamp: float
    value: float | None
    outcome: Outcome
    tick: int = 0
    error: str = ""

    def __post_init__(self) -> None:
        if self.outcome is Outcome.SUCCESS:
            if self.value is None:
                raise ValueError("a successful observation requires a value")
            if not math.isfinite(self.value):
                raise ValueError(f"observation value must be finite, got {self.value}")
        elif self.value is not None:
            raise ValueError("a failed observation must not carry a value")

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @classmethod
    def failure(cls, timestamp: float, tick: int = 0, error: str = "") -> Observation:
        """Build a FAILURE observation with no value."""
        return cls(
            timestamp=timestamp,
            value=None,
            outcome=Outcome.FAILURE,
            tick=tick,
            error=error,
        )


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Summary:
    """Reduction of an observation sequence.

    Counts are always defined.  The statistics are computed over the
    successful observations only and are ``None`` when there were none.
    """

    count: int
    success_count: int
    failure_count: int
    mean: float | None = None
    min: float | None = None
    max: float | None = None
    median: float | None = None
    p95: float | None = None

    def __post_init__(self) -> None:
        if self.count != self.success_count + self.failure_count:
            raise ValueError(
                f"count ({self.count}) must equal success_count "
                f"({self.success_count}) + failure_count ({self.failure_count})"
            )
        if self.success_count == 0 and self.mean is not None:
            raise ValueError("a summary without successful observations has no statistics")

    @property
    def has_data(self) -> bool:
        """True when at least one observation succeeded."""
        return self.success_count > 0

    @property
    def success_rate(self) -> float:
        """Fraction of observations that succeeded, in [0, 1]."""
        if self.count == 0:
            return 0.0
        return self.success_count / self.count

    def get(self, statistic: Statistic) -> float | None:
        """Return the value of *statistic*, or ``None`` when absent."""
        return getattr(self, statistic.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "mean": self.mean,
            "min": self.min,
            "max": self.max,
            "median": self.median,
            "p95": self.p95,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Summary:
        return cls(
            count=int(data["count"]),
            success_count=int(data["success_count"]),
            failure_count=int(data["failure_count"]),
            mean=data.get("mean"),
            min=data.get("min"),
            max=data.get("max"),
            median=data.get("median"),
            p95=data.get("p95"),
        )


# ---------------------------------------------------------------------------
# Threshold
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Threshold:
    """A named comparison rule for one KPI.

    ``limit`` is the guidance value the metric must stay under
    (LESS_THAN_IS_GOOD) or over (GREATER_THAN_IS_GOOD).
    """

    name: str
    limit: float
    direction: Direction = Direction.LESS_THAN_IS_GOOD
    warning_multiplier: float = DEFAULT_WARNING_MULTIPLIER
    unit: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("threshold name must not be empty")
        if not self.limit > 0:
            raise ValueError(f"limit must be > 0, got {self.limit}")
        if not self.warning_multiplier > 1.0:
            raise ValueError(
                f"warning_multiplier must be > 1, got {self.warning_multiplier}"
            )

    @property
    def warning_boundary(self) -> float:
        """Boundary between WARNING and CRITICAL."""
        if self.direction is Direction.GREATER_THAN_IS_GOOD:
            return self.limit * GREATER_WARNING_RATIO
        return self.limit * self.warning_multiplier

    def with_limit(self, limit: float) -> Threshold:
        """Return a copy with a different limit."""
        return Threshold(
            name=self.name,
            limit=limit,
            direction=self.direction,
            warning_multiplier=self.warning_multiplier,
            unit=self.unit,
            description=self.description,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "limit": self.limit,
            "direction": self.direction.value,
            "warning_multiplier": self.warning_multiplier,
            "unit": self.unit,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Threshold:
        return cls(
            name=data["name"],
            limit=float(data["limit"]),
            direction=Direction(data.get("direction", Direction.LESS_THAN_IS_GOOD.value)),
            warning_multiplier=float(
                data.get("warning_multiplier", DEFAULT_WARNING_MULTIPLIER)
            ),
            unit=data.get("unit", ""),
            description=data.get("description", ""),
        )


# ---------------------------------------------------------------------------
# CheckResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckResult:
    """Outcome of one Sampler + Aggregator + ThresholdEvaluator run.

    Every check produces this same shape regardless of what it measures.
    ``summary`` is ``None`` only for ERRORED results.
    """

    name: str
    threshold_name: str
    status: CheckStatus
    summary: Summary | None = None
    observed_value: float | None = None
    statistic: Statistic = Statistic.MEAN
    limit: float | None = None
    unit: str = ""
    started_at: float = 0.0
    finished_at: float = 0.0
    error: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_met(self) -> bool:
        return self.status is CheckStatus.MET

    @property
    def duration(self) -> float:
        """Wall-clock seconds the check took."""
        return max(0.0, self.finished_at - self.started_at)

    @classmethod
    def errored(
        cls,
        name: str,
        threshold_name: str = "",
        error: str = "",
        started_at: float = 0.0,
        finished_at: float = 0.0,
    ) -> CheckResult:
        """Synthetic result recorded for a check that raised."""
        return cls(
            name=name,
            threshold_name=threshold_name,
            status=CheckStatus.ERRORED,
            started_at=started_at,
            finished_at=finished_at,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "threshold_name": self.threshold_name,
            "status": self.status.value,
            "summary": self.summary.to_dict() if self.summary is not None else None,
            "observed_value": self.observed_value,
            "statistic": self.statistic.value,
            "limit": self.limit,
            "unit": self.unit,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "error": self.error,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CheckResult:
        summary = data.get("summary")
        return cls(
            name=data["name"],
            threshold_name=data.get("threshold_name", ""),
            status=CheckStatus(data["status"]),
            summary=Summary.from_dict(summary) if summary else None,
            observed_value=data.get("observed_value"),
            statistic=Statistic(data.get("statistic", Statistic.MEAN.value)),
            limit=data.get("limit"),
            unit=data.get("unit", ""),
            started_at=data.get("started_at", 0.0),
            finished_at=data.get("finished_at", 0.0),
            error=data.get("error", ""),
            metadata=data.get("metadata", {}),
        )
