"""Base probe abstraction.

A probe is the seam between the measurement core and the machine being
measured: any callable returning ``(value, outcome)`` will do.
:class:`BaseProbe` adds a name, a unit and optional ``setup`` /
``teardown`` hooks that bracket a sampling window (priming counters,
creating scratch files, verifying API access).

Subclasses implement :meth:`_measure`, returning a float or raising.  The
public :meth:`__call__` turns that into the ``(value, outcome)`` pair the
sampler expects; exceptions are left for the sampler to record.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from dlp_impact.domain.enums import Outcome


class BaseProbe(ABC):
    """Template Method base class for all probes.

    Subclasses must implement:
    - ``name`` (class attribute or property) -- probe identifier.
    - ``_measure()`` -- take one measurement.

    Subclasses *may* override ``setup()`` and ``teardown()``.
    """

    name: str = "probe"
    unit: str = ""

    @abstractmethod
    def _measure(self) -> float:
        """Take one measurement and return its value."""

    def setup(self) -> None:
        """Prepare before the first tick.  Default: nothing."""

    def teardown(self) -> None:
        """Release resources after the last tick.  Default: nothing."""

    def __call__(self) -> tuple[float, Outcome]:
        return self._measure(), Outcome.SUCCESS

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionProbe(BaseProbe):
    """Adapt a plain ``() -> float`` callable into a probe."""

    def __init__(self, fn: Callable[[], float], name: str = "", unit: str = "") -> None:
        self._fn = fn
        self.name = name or getattr(fn, "__name__", "function")
        self.unit = unit

    def _measure(self) -> float:
        return float(self._fn())


class TimedProbe(BaseProbe):
    """Probe whose value is the elapsed milliseconds of :meth:`_operation`."""

    unit = "ms"

    def __init__(self, timer: Callable[[], float] = time.perf_counter) -> None:
        self._timer = timer

    @abstractmethod
    def _operation(self) -> None:
        """The operation being timed."""

    def _measure(self) -> float:
        t0 = self._timer()
        self._operation()
        return (self._timer() - t0) * 1000.0
