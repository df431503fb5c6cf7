"""Domain exceptions for the DLP impact toolkit.

All domain-specific exceptions inherit from ``DlpImpactError`` so callers
can catch the full family with a single ``except`` clause when needed.

Only :class:`OrchestrationError` is fatal to a suite run.  Probe and check
failures are recovered where they happen and recorded in the results.
"""

from __future__ import annotations

from typing import Any


class DlpImpactError(Exception):
    """Base exception for all DLP impact errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class InvalidInputError(DlpImpactError):
    """Raised when a measurement component receives unusable input.

    Examples: aggregating an empty observation sequence, a negative tick
    count, or a non-positive tick interval.
    """


class ProbeFailure(DlpImpactError):
    """Raised by a probe when a single measurement could not be taken.

    The sampler records this as a FAILURE observation and keeps going.
    """

    def __init__(
        self,
        message: str = "Probe failed",
        probe: str = "",
        tick: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.probe = probe
        self.tick = tick


class CheckFailure(DlpImpactError):
    """Raised when a whole check cannot produce a result.

    Common causes: the probe source is entirely unavailable, or a
    compliance API permission is missing.
    """

    def __init__(
        self,
        message: str = "Check failed",
        check_name: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.check_name = check_name


class OrchestrationError(DlpImpactError):
    """Raised for configuration-level errors that abort a suite run.

    No checks registered, an unknown check name or monitoring mode, or a
    required credential missing for a check that mandates it.
    """
