"""Rich-based console dashboard with a plain-text mode.

:class:`ConsoleDashboard` renders check results and suite runs with
``rich`` tables, colour-coding each status.  ``use_rich=False`` switches
to simple ``print()`` output for log files and dumb terminals.
"""

from __future__ import annotations

import sys
from collections.abc import Mapping, Sequence
from typing import Any

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.table import Table as RichTable

from dlp_impact.domain.aggregates import SuiteRun
from dlp_impact.domain.enums import CheckStatus, Direction, OverallStatus
from dlp_impact.domain.events import CheckCompleted, CheckErrored, CheckStarted, DomainEvent
from dlp_impact.domain.values import CheckResult, Threshold
from dlp_impact.infrastructure.event_bus import EventBus

STATUS_COLOURS = {
    CheckStatus.MET: "green",
    CheckStatus.WARNING: "yellow",
    CheckStatus.CRITICAL: "red",
    CheckStatus.NO_DATA: "dim",
    CheckStatus.ERRORED: "magenta",
}

OVERALL_COLOURS = {
    OverallStatus.HEALTHY: "bold green",
    OverallStatus.WARNING: "bold yellow",
    OverallStatus.CRITICAL: "bold red",
}

_CANCELLED_NOTE = "Cancelled: remaining checks were skipped; results are partial."

_SPARK_CHARS = " " + "▁▂▃▄▅▆▇█"


def sparkline(values: Sequence[float], width: int = 60) -> str:
    """Unicode sparkline for *values*, down-sampled to *width* characters."""
    if not values:
        return ""
    values = list(values)
    if len(values) > width:
        bin_size = len(values) / width
        sampled: list[float] = []
        for i in range(width):
            chunk = values[int(i * bin_size):int((i + 1) * bin_size)]
            sampled.append(sum(chunk) / len(chunk) if chunk else 0.0)
        values = sampled

    lo, hi = min(values), max(values)
    span = hi - lo if hi != lo else 1.0
    top = len(_SPARK_CHARS) - 1
    return "".join(
        _SPARK_CHARS[max(0, min(top, int((v - lo) / span * top)))] for v in values
    )


def _fmt_value(value: float | None, unit: str) -> str:
    return "n/a" if value is None else f"{value:.2f} {unit}".rstrip()


def _fmt_counts(result: CheckResult) -> str:
    if result.summary is None:
        return "-"
    return f"{result.summary.success_count}/{result.summary.count}"


class ConsoleDashboard:
    """Console presentation for check results and suite runs.

    Parameters
    ----------
    use_rich:
        ``False`` forces plain-text output.
    file:
        Output stream.  Defaults to ``sys.stdout``.
    """

    def __init__(self, use_rich: bool = True, file: Any = None) -> None:
        self._file = file or sys.stdout
        self._use_rich = use_rich
        self._console = RichConsole(file=self._file) if use_rich else None

    @property
    def console(self) -> RichConsole | None:
        return self._console

    def _plain_print(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("file", self._file)
        print(*args, **kwargs)

    # -- public API --------------------------------------------------------

    def print_check(self, result: CheckResult) -> None:
        """Print one check result with its summary statistics."""
        if self._console is not None:
            colour = STATUS_COLOURS[result.status]
            table = RichTable(
                title=f"Check: {escape(result.name)}", show_header=True, header_style="bold cyan"
            )
            table.add_column("Field", style="bold")
            table.add_column("Value", justify="right")
            table.add_row("Status", f"[{colour}]{result.status.value}[/{colour}]")
            table.add_row(
                f"Observed ({result.statistic.value})",
                _fmt_value(result.observed_value, result.unit),
            )
            table.add_row("Limit", _fmt_value(result.limit, result.unit))
            table.add_row("OK/Total", _fmt_counts(result))
            if result.summary is not None and result.summary.has_data:
                s = result.summary
                table.add_row("Min / Max", f"{s.min:.2f} / {s.max:.2f}")
                table.add_row("Median / P95", f"{s.median:.2f} / {s.p95:.2f}")
            if result.error:
                table.add_row("Error", f"[magenta]{escape(result.error)}[/magenta]")
            self._console.print()
            self._console.print(table)
            self._console.print()
        else:
            self._plain_print()
            self._plain_print(f"=== Check: {result.name} ===")
            self._plain_print(f"  status:   {result.status.value}")
            self._plain_print(
                f"  observed: {_fmt_value(result.observed_value, result.unit)} "
                f"({result.statistic.value})"
            )
            self._plain_print(f"  limit:    {_fmt_value(result.limit, result.unit)}")
            self._plain_print(f"  ok/total: {_fmt_counts(result)}")
            if result.error:
                self._plain_print(f"  error:    {result.error}")
            self._plain_print()

    def print_suite(self, run: SuiteRun) -> None:
        """Print every result of *run* plus the overall rollup."""
        if not len(run):
            self._plain_print("[no check results]")
            if run.cancelled:
                self._plain_print(_CANCELLED_NOTE)
            return
        if self._console is not None:
            self._print_suite_rich(run)
        else:
            self._print_suite_plain(run)

    def print_failures(self, context: Mapping[str, Sequence[str]]) -> None:
        """Print per-check failure lines, e.g. from ``SuiteCollector.failure_context()``."""
        if not context:
            return
        if self._console is not None:
            self._console.print("[bold]Failures[/bold]")
            for name, lines in context.items():
                self._console.print(f"  [bold]{escape(name)}[/bold]")
                for line in lines:
                    self._console.print(f"    [dim]-[/dim] {escape(line)}")
            self._console.print()
        else:
            self._plain_print("Failures")
            for name, lines in context.items():
                self._plain_print(f"  {name}")
                for line in lines:
                    self._plain_print(f"    - {line}")
            self._plain_print()

    def print_observations(self, name: str, values: Sequence[float], unit: str = "") -> None:
        """Sparkline of the successful observation values of one check."""
        if not values:
            self._plain_print(f"{name}: [no observations]")
            return
        line = (
            f"{name}: {sparkline(values)}  min={min(values):.2f} max={max(values):.2f} "
            f"{unit}".rstrip()
        )
        if self._console is not None:
            self._console.print(line, markup=False)
        else:
            self._plain_print(line)

    def print_thresholds(self, thresholds: Mapping[str, Threshold]) -> None:
        if self._console is not None:
            table = RichTable(title="Thresholds", show_header=True, header_style="bold cyan")
            table.add_column("Name", style="bold")
            table.add_column("Limit", justify="right")
            table.add_column("Good when")
            table.add_column("Description")
            for t in thresholds.values():
                table.add_row(
                    t.name, _fmt_value(t.limit, t.unit), _direction_label(t), t.description
                )
            self._console.print(table)
        else:
            width = max((len(n) for n in thresholds), default=4)
            for t in thresholds.values():
                self._plain_print(
                    f"{t.name:<{width}}  {_fmt_value(t.limit, t.unit):>12}  {_direction_label(t)}"
                )

    def follow(self, event_bus: EventBus) -> None:
        """Print a progress line as each check starts and finishes."""
        event_bus.subscribe(CheckStarted, self._on_event)
        event_bus.subscribe(CheckCompleted, self._on_event)
        event_bus.subscribe(CheckErrored, self._on_event)

    def _on_event(self, event: DomainEvent) -> None:
        if isinstance(event, CheckStarted):
            line = f"-> {event.check_name} ..."
        elif isinstance(event, CheckCompleted) and event.result is not None:
            r = event.result
            line = f"   {event.check_name}: {r.status.value} ({_fmt_value(r.observed_value, r.unit)})"
        elif isinstance(event, CheckErrored):
            line = f"   {event.check_name}: errored ({event.error_type})"
        else:
            return
        if self._console is not None:
            self._console.print(line, markup=False, highlight=False)
        else:
            self._plain_print(line)

    # -- suite rendering ---------------------------------------------------

    def _print_suite_rich(self, run: SuiteRun) -> None:
        assert self._console is not None
        table = RichTable(title=escape(run.name), show_header=True, header_style="bold cyan")
        table.add_column("Check", style="bold")
        table.add_column("Status", justify="center")
        table.add_column("Observed", justify="right")
        table.add_column("Limit", justify="right")
        table.add_column("OK/Total", justify="right")

        for r in run:
            colour = STATUS_COLOURS[r.status]
            table.add_row(
                escape(r.name),
                f"[{colour}]{r.status.value}[/{colour}]",
                _fmt_value(r.observed_value, r.unit),
                _fmt_value(r.limit, r.unit),
                _fmt_counts(r),
            )

        self._console.print()
        self._console.print(table)
        overall = run.overall_status
        if overall is not None:
            style = OVERALL_COLOURS[overall]
            self._console.print(
                f"Overall: [{style}]{overall.value.upper()}[/{style}]  "
                f"met {run.met_count}/{len(run)} ({run.pass_rate:.0%})  "
                f"errored {run.errored_count}  [dim]{run.duration:.1f}s[/dim]"
            )
        if run.cancelled:
            self._console.print(f"[bold yellow]{_CANCELLED_NOTE}[/bold yellow]")
        self._console.print()

    def _print_suite_plain(self, run: SuiteRun) -> None:
        name_w = max(len("Check"), *(len(r.name) for r in run))
        header = (
            f"{'Check':<{name_w}}  {'Status':<9}  {'Observed':>14}  {'Limit':>12}  {'OK/Total':>8}"
        )
        self._plain_print()
        self._plain_print(f"=== {run.name} ===")
        self._plain_print(header)
        self._plain_print("-" * len(header))
        for r in run:
            self._plain_print(
                f"{r.name:<{name_w}}  {r.status.value:<9}  "
                f"{_fmt_value(r.observed_value, r.unit):>14}  "
                f"{_fmt_value(r.limit, r.unit):>12}  {_fmt_counts(r):>8}"
            )
        self._plain_print("-" * len(header))
        overall = run.overall_status
        if overall is not None:
            self._plain_print(
                f"Overall: {overall.value.upper()}  met {run.met_count}/{len(run)} "
                f"({run.pass_rate:.0%})  errored {run.errored_count}  {run.duration:.1f}s"
            )
        if run.cancelled:
            self._plain_print(_CANCELLED_NOTE)
        self._plain_print()


def _direction_label(threshold: Threshold) -> str:
    return "below limit" if threshold.direction is Direction.LESS_THAN_IS_GOOD else "above limit"
