"""Suite collector -- subscribes to domain events and keeps per-check logs.

The :class:`SuiteCollector` listens to the :class:`EventBus` and builds a
:class:`CheckLog` for every check that runs: the raw observations, each
probe failure with its tick, and the final result or error.  Reports use
these logs to explain *why* a check ended up NO_DATA or ERRORED without
re-running it.

The collector is purely passive -- it never publishes events itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dlp_impact.domain.events import (
    CheckCompleted,
    CheckErrored,
    CheckStarted,
    DomainEvent,
    ObservationRecorded,
    ProbeFailed,
)
from dlp_impact.domain.values import CheckResult, Observation
from dlp_impact.infrastructure.event_bus import EventBus


@dataclass
class ProbeFailureRecord:
    """One failed probe invocation."""

    tick: int
    probe_name: str
    error: str
    timestamp: float


@dataclass
class CheckLog:
    """Everything observed while one check ran."""

    check_name: str
    observations: list[Observation] = field(default_factory=list)
    probe_failures: list[ProbeFailureRecord] = field(default_factory=list)
    result: CheckResult | None = None
    error: str = ""
    error_type: str = ""

    @property
    def errored(self) -> bool:
        return bool(self.error_type)

    @property
    def num_observations(self) -> int:
        return len(self.observations)

    def get_values(self) -> list[float]:
        """Values of the successful observations, in tick order."""
        return [o.value for o in self.observations if o.value is not None]

    def failed_ticks(self) -> list[int]:
        return [f.tick for f in self.probe_failures]


class SuiteCollector:
    """Builds :class:`CheckLog` objects from events as a suite runs.

    Usage::

        bus = EventBus()
        collector = SuiteCollector(bus)
        # ... orchestrator.run() ...
        log = collector.get_log("FileOpenDelay")
    """

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus
        self._logs: dict[str, CheckLog] = {}
        self._subscribe()

    def _subscribe(self) -> None:
        self._event_bus.subscribe(CheckStarted, self._on_check_started)
        self._event_bus.subscribe(ObservationRecorded, self._on_observation)
        self._event_bus.subscribe(ProbeFailed, self._on_probe_failed)
        self._event_bus.subscribe(CheckCompleted, self._on_check_completed)
        self._event_bus.subscribe(CheckErrored, self._on_check_errored)

    def _ensure_log(self, check_name: str) -> CheckLog:
        if check_name not in self._logs:
            self._logs[check_name] = CheckLog(check_name=check_name)
        return self._logs[check_name]

    # -- event handlers -------------------------------------------------------

    def _on_check_started(self, event: DomainEvent) -> None:
        assert isinstance(event, CheckStarted)
        # A re-run of the same check starts from a clean log.
        self._logs[event.check_name] = CheckLog(check_name=event.check_name)

    def _on_observation(self, event: DomainEvent) -> None:
        assert isinstance(event, ObservationRecorded)
        if event.observation is not None:
            self._ensure_log(event.source_id).observations.append(event.observation)

    def _on_probe_failed(self, event: DomainEvent) -> None:
        assert isinstance(event, ProbeFailed)
        self._ensure_log(event.source_id).probe_failures.append(
            ProbeFailureRecord(
                tick=event.tick,
                probe_name=event.probe_name,
                error=event.error,
                timestamp=event.timestamp,
            )
        )

    def _on_check_completed(self, event: DomainEvent) -> None:
        assert isinstance(event, CheckCompleted)
        self._ensure_log(event.check_name).result = event.result

    def _on_check_errored(self, event: DomainEvent) -> None:
        assert isinstance(event, CheckErrored)
        log = self._ensure_log(event.check_name)
        log.error = event.error
        log.error_type = event.error_type

    # -- public query API -----------------------------------------------------

    def get_log(self, check_name: str) -> CheckLog | None:
        return self._logs.get(check_name)

    def get_all_logs(self) -> dict[str, CheckLog]:
        """Shallow copy of all logs keyed by check name, in run order."""
        return dict(self._logs)

    def check_names(self) -> list[str]:
        return list(self._logs.keys())

    def failure_context(self) -> dict[str, list[str]]:
        """Human-readable failure lines per check that had any failure."""
        context: dict[str, list[str]] = {}
        for name, log in self._logs.items():
            lines = [
                f"tick {f.tick + 1}: {f.probe_name}: {f.error}" for f in log.probe_failures
            ]
            if log.errored:
                lines.append(f"check error ({log.error_type}): {log.error}")
            if lines:
                context[name] = lines
        return context

    def clear(self) -> None:
        self._logs.clear()
