"""Domain layer for the DLP impact toolkit.

Re-exports all public domain types so that consumers can write::

    from dlp_impact.domain import Threshold, Direction, CheckStatus
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    CheckStatus,
    Direction,
    MonitoringMode,
    Outcome,
    OverallStatus,
    Statistic,
)

# -- Value Objects ------------------------------------------------------------
from .values import (
    CheckResult,
    Observation,
    Summary,
    Threshold,
)

# -- Aggregates ---------------------------------------------------------------
from .aggregates import SuiteRun, compute_overall_status

# -- Domain Events ------------------------------------------------------------
from .events import (
    CheckCompleted,
    CheckErrored,
    CheckStarted,
    DomainEvent,
    ObservationRecorded,
    ProbeFailed,
    SuiteCompleted,
    SuiteStarted,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    CheckFailure,
    DlpImpactError,
    InvalidInputError,
    OrchestrationError,
    ProbeFailure,
)

__all__ = [
    # Enums
    "CheckStatus",
    "Direction",
    "MonitoringMode",
    "Outcome",
    "OverallStatus",
    "Statistic",
    # Values
    "CheckResult",
    "Observation",
    "Summary",
    "Threshold",
    # Aggregates
    "SuiteRun",
    "compute_overall_status",
    # Events
    "CheckCompleted",
    "CheckErrored",
    "CheckStarted",
    "DomainEvent",
    "ObservationRecorded",
    "ProbeFailed",
    "SuiteCompleted",
    "SuiteStarted",
    # Exceptions
    "CheckFailure",
    "DlpImpactError",
    "InvalidInputError",
    "OrchestrationError",
    "ProbeFailure",
]
