"""Domain events for the DLP impact toolkit.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  Events
are the integration seam between the measurement core and its observers:
samplers and the orchestrator emit events; collectors and the console
react.

All events carry a ``timestamp`` and a ``source_id`` identifying the
originating check or suite.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .enums import OverallStatus
from .values import CheckResult, Observation

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Suite lifecycle events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SuiteStarted(DomainEvent):
    """The orchestrator began running its check list."""

    suite_name: str = ""
    check_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class SuiteCompleted(DomainEvent):
    """The suite run was finalized; ``cancelled`` when it was cut short."""

    suite_name: str = ""
    overall_status: OverallStatus | None = None
    met_count: int = 0
    total_count: int = 0
    cancelled: bool = False


# ---------------------------------------------------------------------------
# Check lifecycle events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckStarted(DomainEvent):
    """A check is about to run."""

    check_name: str = ""
    index: int = 0


@dataclass(frozen=True)
class CheckCompleted(DomainEvent):
    """A check produced a result."""

    check_name: str = ""
    result: CheckResult | None = None


@dataclass(frozen=True)
class CheckErrored(DomainEvent):
    """A check raised before producing a result."""

    check_name: str = ""
    error: str = ""
    error_type: str = ""


# ---------------------------------------------------------------------------
# Sampling events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ObservationRecorded(DomainEvent):
    """The sampler recorded one observation."""

    observation: Observation | None = None


@dataclass(frozen=True)
class ProbeFailed(DomainEvent):
    """A single probe invocation failed."""

    probe_name: str = ""
    tick: int = 0
    error: str = ""
