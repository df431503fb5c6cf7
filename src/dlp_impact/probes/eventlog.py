"""Event-log error rate probe.

Endpoint agents report their own health through the operating system
event log.  :class:`EventLogErrorRateProbe` reads recent records from an
event source and reports the percentage at error or critical level.

An event source is any callable returning :class:`EventRecord` objects.
:class:`JsonLinesEventSource` reads a JSON-lines export, one object per
line, as produced by e.g. ``Get-WinEvent | ForEach-Object { $_ |
ConvertTo-Json -Compress }`` or a log shipper.  Timestamps may be ISO 8601
strings, epoch seconds, or the ``/Date(ms)/`` form that Windows
PowerShell 5.1 writes for ``TimeCreated``.
"""

from __future__ import annotations

import datetime
import json
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dlp_impact.domain.exceptions import ProbeFailure
from dlp_impact.probes.base import BaseProbe

logger = logging.getLogger(__name__)

ERROR_LEVELS = frozenset({"critical", "error"})

# Windows event level numbers.
_NUMERIC_LEVELS = {1: "critical", 2: "error", 3: "warning", 4: "information", 5: "verbose"}

# Windows PowerShell 5.1 serializes DateTime as "\/Date(1772366400000)\/".
_MS_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")


@dataclass(frozen=True)
class EventRecord:
    """One event log entry."""

    timestamp: datetime.datetime
    level: str
    provider: str
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.level.lower() in ERROR_LEVELS


EventSource = Callable[[], Sequence[EventRecord]]


def _parse_timestamp(raw: Any) -> datetime.datetime:
    if isinstance(raw, (int, float)):
        return datetime.datetime.fromtimestamp(raw, tz=datetime.UTC)
    match = _MS_DATE.match(str(raw).strip())
    if match:
        # The epoch milliseconds are UTC; the optional offset is display only.
        return datetime.datetime.fromtimestamp(int(match.group(1)) / 1000, tz=datetime.UTC)
    ts = datetime.datetime.fromisoformat(str(raw))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.UTC)
    return ts


def _parse_level(raw: Any) -> str:
    if isinstance(raw, int):
        return _NUMERIC_LEVELS.get(raw, "information")
    return str(raw).strip().lower()


def parse_event(data: dict[str, Any]) -> EventRecord:
    """Build an :class:`EventRecord` from a decoded JSON object.

    Accepts both the Windows export field names (``TimeCreated``,
    ``LevelDisplayName``/``Level``, ``ProviderName``, ``Message``) and
    plain lower-case ones.

    Raises
    ------
    ValueError
        If the timestamp or level is missing or unparsable.
    """
    raw_ts = data.get("TimeCreated", data.get("timestamp"))
    raw_level = data.get("LevelDisplayName", data.get("Level", data.get("level")))
    if raw_ts is None or raw_level is None:
        raise ValueError("event is missing a timestamp or level")
    return EventRecord(
        timestamp=_parse_timestamp(raw_ts),
        level=_parse_level(raw_level),
        provider=str(data.get("ProviderName", data.get("provider", ""))),
        message=str(data.get("Message", data.get("message", ""))),
    )


class JsonLinesEventSource:
    """Read :class:`EventRecord` objects from a JSON-lines file.

    Malformed lines are skipped and counted; a missing file is a probe
    failure.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self.skipped = 0

    def __call__(self) -> list[EventRecord]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProbeFailure(f"cannot read event log {self._path}: {exc}") from exc

        records: list[EventRecord] = []
        self.skipped = 0
        for line in text.splitlines():
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                if not isinstance(data, dict):
                    raise ValueError("not an object")
                records.append(parse_event(data))
            except ValueError:
                self.skipped += 1
        if self.skipped:
            logger.debug("%s: skipped %d malformed lines", self._path, self.skipped)
        return records

    def __repr__(self) -> str:
        return f"JsonLinesEventSource({str(self._path)!r})"


class EventLogErrorRateProbe(BaseProbe):
    """Percentage of error/critical events in the look-back *window*.

    Only events from *providers* are considered (case-insensitive); an
    empty *providers* keeps everything.  A window with no events at all
    is a failed measurement, not a 0 % error rate.
    """

    name = "event_log_error_rate"
    unit = "%"

    def __init__(
        self,
        source: EventSource,
        providers: Iterable[str] = (),
        window: datetime.timedelta = datetime.timedelta(minutes=60),
        now: Callable[[], datetime.datetime] = lambda: datetime.datetime.now(datetime.UTC),
    ) -> None:
        self._source = source
        self._providers = {p.lower() for p in providers}
        self._window = window
        self._now = now

    def _relevant(self, records: Iterable[EventRecord]) -> list[EventRecord]:
        cutoff = self._now() - self._window
        return [
            r
            for r in records
            if r.timestamp >= cutoff
            and (not self._providers or r.provider.lower() in self._providers)
        ]

    def _measure(self) -> float:
        records = self._relevant(self._source())
        if not records:
            raise ProbeFailure(
                f"no events in the last {self._window}", probe=self.name
            )
        errors = sum(1 for r in records if r.is_error)
        return errors / len(records) * 100.0
