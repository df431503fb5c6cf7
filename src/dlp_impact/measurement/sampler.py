"""Sampler -- timed, bounded series of probe observations.

The :class:`Sampler` invokes a caller-supplied probe once per tick and
turns each invocation into an :class:`Observation`.  Ticks run strictly
one after another on the calling thread; the probe for tick *n + 1* never
starts before tick *n* has been recorded.

Design notes
~~~~~~~~~~~~
* A probe that raises produces a FAILURE observation with no value; the
  run carries on.
* Cancellation and the optional deadline are checked between ticks,
  never mid-probe.  Whatever was collected so far is returned as a
  normal, shorter result.
* A sampler is single-use: its observation stream cannot be restarted.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Iterator

from dlp_impact.domain.enums import Outcome
from dlp_impact.domain.events import ObservationRecorded, ProbeFailed
from dlp_impact.domain.exceptions import InvalidInputError
from dlp_impact.domain.values import Observation
from dlp_impact.infrastructure.event_bus import EventBus

logger = logging.getLogger(__name__)

ProbeFn = Callable[[], tuple[float | None, Outcome]]


def _probe_name(probe: ProbeFn) -> str:
    return getattr(probe, "name", None) or getattr(probe, "__name__", None) or repr(probe)


class Sampler:
    """Run *probe* for *tick_count* ticks spaced *tick_interval* seconds apart.

    Parameters
    ----------
    probe:
        Callable returning ``(value, outcome)``.
    tick_count:
        Number of ticks to run.  Zero is allowed and yields nothing.
    tick_interval:
        Seconds between consecutive ticks; must be positive.
    max_ticks:
        Optional hard cap on *tick_count*.
    cancel_event:
        When set between ticks, sampling stops early.  The inter-tick wait
        uses ``cancel_event.wait`` so a cancel wakes the sampler at once.
    deadline:
        Optional absolute time (same clock as *clock*) after which no
        further tick starts.
    sleep / clock:
        Injectable for tests.
    event_bus:
        Receives an event per observation and per probe failure.
    source_id:
        Identifier put on published events, usually the check name.
    """

    def __init__(
        self,
        probe: ProbeFn,
        tick_count: int,
        tick_interval: float,
        *,
        max_ticks: int | None = None,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        event_bus: EventBus | None = None,
        source_id: str = "",
    ) -> None:
        if tick_count < 0:
            raise InvalidInputError(f"tick_count must be >= 0, got {tick_count}")
        if not tick_interval > 0:
            raise InvalidInputError(f"tick_interval must be > 0, got {tick_interval}")
        if max_ticks is not None and tick_count > max_ticks:
            raise InvalidInputError(
                f"tick_count {tick_count} exceeds the cap of {max_ticks} samples"
            )
        self._probe = probe
        self._tick_count = tick_count
        self._tick_interval = tick_interval
        self._cancel_event = cancel_event
        self._deadline = deadline
        self._sleep = sleep
        self._clock = clock
        self._event_bus = event_bus
        self._source_id = source_id or _probe_name(probe)
        self._started = False
        self._stopped_early = False

    # -- properties -----------------------------------------------------------

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    @property
    def stopped_early(self) -> bool:
        """True when cancellation or the deadline cut the run short."""
        return self._stopped_early

    # -- sampling -------------------------------------------------------------

    def observations(self) -> Iterator[Observation]:
        """Lazily yield one observation per tick.

        Raises :class:`InvalidInputError` if the sampler was already used.
        """
        if self._started:
            raise InvalidInputError("Sampler observations cannot be restarted")
        self._started = True
        return self._run()

    def collect(self) -> tuple[Observation, ...]:
        """Run every tick and return the finished observation sequence."""
        return tuple(self.observations())

    def _run(self) -> Iterator[Observation]:
        previous_ts: float | None = None
        for tick in range(self._tick_count):
            if tick > 0:
                if self._should_stop():
                    break
                self._wait()
            if self._should_stop():
                break

            observation = self._observe(tick)
            # Clocks may step backwards; keep timestamps non-decreasing.
            if previous_ts is not None and observation.timestamp < previous_ts:
                observation = Observation(
                    timestamp=previous_ts,
                    value=observation.value,
                    outcome=observation.outcome,
                    tick=observation.tick,
                    error=observation.error,
                )
            previous_ts = observation.timestamp
            self._publish(ObservationRecorded(source_id=self._source_id, observation=observation))
            yield observation

    def _observe(self, tick: int) -> Observation:
        timestamp = self._clock()
        try:
            value, outcome = self._probe()
        except Exception as exc:
            logger.warning(
                "%s: probe %s failed on tick %d/%d: %s",
                self._source_id,
                _probe_name(self._probe),
                tick + 1,
                self._tick_count,
                exc,
            )
            self._publish(
                ProbeFailed(
                    source_id=self._source_id,
                    probe_name=_probe_name(self._probe),
                    tick=tick,
                    error=str(exc) or type(exc).__name__,
                )
            )
            return Observation.failure(timestamp, tick=tick, error=str(exc) or type(exc).__name__)

        if outcome is not Outcome.SUCCESS or value is None or not math.isfinite(value):
            logger.debug("%s: tick %d reported failure", self._source_id, tick + 1)
            self._publish(
                ProbeFailed(
                    source_id=self._source_id,
                    probe_name=_probe_name(self._probe),
                    tick=tick,
                    error="probe reported failure",
                )
            )
            return Observation.failure(timestamp, tick=tick, error="probe reported failure")

        return Observation(
            timestamp=timestamp,
            value=float(value),
            outcome=Outcome.SUCCESS,
            tick=tick,
        )

    def _should_stop(self) -> bool:
        if self._cancel_event is not None and self._cancel_event.is_set():
            logger.info("%s: sampling cancelled", self._source_id)
            self._stopped_early = True
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            logger.info("%s: sampling deadline reached", self._source_id)
            self._stopped_early = True
            return True
        return False

    def _wait(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.wait(self._tick_interval)
        else:
            self._sleep(self._tick_interval)

    def _publish(self, event: ObservationRecorded | ProbeFailed) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)

    def __repr__(self) -> str:
        return (
            f"Sampler(probe={_probe_name(self._probe)!r}, "
            f"tick_count={self._tick_count}, tick_interval={self._tick_interval})"
        )
