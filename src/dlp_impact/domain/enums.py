"""Domain enumerations for the DLP impact toolkit.

These enums capture the fixed vocabularies used across the domain layer:
probe outcomes, threshold directions, check and suite statuses, summary
statistics, and the named monitoring modes.
"""

from enum import Enum


class Outcome(Enum):
    """Whether the underlying probe call completed."""

    SUCCESS = "success"
    FAILURE = "failure"


class Direction(Enum):
    """Which side of a threshold limit counts as good."""

    LESS_THAN_IS_GOOD = "less_than_is_good"
    GREATER_THAN_IS_GOOD = "greater_than_is_good"


class CheckStatus(Enum):
    """Classification of one check against its threshold."""

    MET = "met"
    WARNING = "warning"
    CRITICAL = "critical"
    NO_DATA = "no_data"  # zero successful observations
    ERRORED = "errored"  # check raised before producing a result


class OverallStatus(Enum):
    """Health rollup of a whole suite run."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class Statistic(Enum):
    """Summary field a check compares against its threshold."""

    MEAN = "mean"
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"
    P95 = "p95"


class MonitoringMode(Enum):
    """Predefined subsets of checks for the suite runner."""

    QUICK = "quick"
    PERFORMANCE = "performance"
    NETWORK = "network"
    COMPLIANCE = "compliance"
    FULL = "full"
