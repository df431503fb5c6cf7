"""Command-line interface for the DLP impact toolkit.

Provides subcommands for running a single check, running a suite of
checks, re-displaying a saved report, and querying toolkit information.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    dlp-impact = "dlp_impact.cli:main"

Usage examples::

    dlp-impact check FileOpenDelay --samples 10 --interval 0.5
    dlp-impact suite --mode performance --export ./reports
    dlp-impact suite --checks AgentCpuUsage,AgentMemoryUsage --non-interactive
    dlp-impact report --input ./reports/dlp_impact_20260101_120000.json
    dlp-impact info

Exit status is 0 whenever the suite ran to completion, whatever the
check outcomes; 1 when it could not be set up; 130 on Ctrl-C.  The first
Ctrl-C stops sampling after the current tick and reports the partial run;
a second one aborts immediately.
"""

from __future__ import annotations

import argparse
import contextlib
import dataclasses
import json
import logging
import signal
import sys
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from dlp_impact.domain.aggregates import SuiteRun
from dlp_impact.domain.enums import MonitoringMode
from dlp_impact.domain.exceptions import OrchestrationError
from dlp_impact.infrastructure.config import SamplingConfig, SuiteConfig, load_config
from dlp_impact.presentation.console import ConsoleDashboard

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ["csv", "json", "html"]


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="dlp-impact",
        description=(
            "Measure the performance impact of an endpoint DLP agent against "
            "published guidance thresholds."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show version and exit.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity. (default: WARNING)",
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        default=False,
        help="Plain-text output without colours or tables.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- shared sampling/export options -------------------------------------
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON or YAML configuration file.",
    )
    common.add_argument(
        "--samples",
        type=int,
        default=None,
        help="Observations per check (1-30). (default: from config, else 15)",
    )
    common.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between observations. (default: from config, else 1.0)",
    )
    common.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds after which each check stops sampling. (default: from config, else none)",
    )
    common.add_argument(
        "--export",
        type=str,
        default=None,
        help="Directory for CSV, JSON and HTML reports.",
    )
    common.add_argument(
        "--plot",
        action="store_true",
        default=False,
        help="Also save PNG charts to the export directory (needs matplotlib).",
    )

    # -- check --------------------------------------------------------------
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Run a single check.",
        description="Sample one KPI and compare it with its threshold.",
    )
    check_parser.add_argument("name", type=str, help="Check name, e.g. FileOpenDelay.")

    # -- suite --------------------------------------------------------------
    suite_parser = subparsers.add_parser(
        "suite",
        parents=[common],
        help="Run a suite of checks.",
        description="Run every check of a monitoring mode, or an explicit list.",
    )
    selection = suite_parser.add_mutually_exclusive_group()
    selection.add_argument(
        "--mode",
        type=str,
        default=None,
        choices=[m.value for m in MonitoringMode],
        help="Monitoring mode. (default: from config, else quick)",
    )
    selection.add_argument(
        "--checks",
        type=str,
        default=None,
        help="Comma-separated check names, run in the given order.",
    )
    interactivity = suite_parser.add_mutually_exclusive_group()
    interactivity.add_argument(
        "--interactive",
        dest="interactive",
        action="store_true",
        default=None,
        help="Prompt for the monitoring mode and export directory.",
    )
    interactivity.add_argument(
        "--non-interactive",
        dest="interactive",
        action="store_false",
        help="Never prompt (for scheduled runs).",
    )

    # -- report -------------------------------------------------------------
    report_parser = subparsers.add_parser(
        "report",
        help="Display a saved JSON report.",
        description="Load a previously exported JSON report and display it.",
    )
    report_parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="Path to the JSON report file.",
    )
    report_parser.add_argument(
        "--format",
        type=str,
        default="table",
        choices=["table", "json", "summary"],
        help="Display format. (default: table)",
    )

    # -- info ---------------------------------------------------------------
    subparsers.add_parser(
        "info",
        help="Show version, checks, thresholds and dependency status.",
        description="Display version, registered checks, thresholds and dependencies.",
    )

    return parser


# =========================================================================
# Helpers
# =========================================================================

def _dashboard(args: argparse.Namespace) -> ConsoleDashboard:
    return ConsoleDashboard(use_rich=not args.plain)


def _load_suite_config(args: argparse.Namespace) -> SuiteConfig:
    """Config file (or defaults) with command-line overrides applied.

    Raises ``ValueError`` for invalid settings.
    """
    config = load_config(args.config) if args.config else SuiteConfig()

    sampling = config.sampling
    if args.samples is not None:
        sampling = dataclasses.replace(sampling, tick_count=args.samples)
    if args.interval is not None:
        sampling = dataclasses.replace(sampling, tick_interval=args.interval)
    if args.timeout is not None:
        sampling = dataclasses.replace(sampling, check_timeout=args.timeout)

    changes: dict[str, Any] = {"sampling": sampling}
    if getattr(args, "mode", None):
        changes["mode"] = args.mode
        changes["checks"] = ()
    if getattr(args, "checks", None):
        changes["checks"] = tuple(n.strip() for n in args.checks.split(",") if n.strip())
    if args.export:
        changes["export_dir"] = args.export
    if getattr(args, "interactive", None) is not None:
        changes["non_interactive"] = not args.interactive

    config = dataclasses.replace(config, **changes)
    config.validate()
    return config


def _prompt_selection(config: SuiteConfig, dashboard: ConsoleDashboard) -> SuiteConfig:
    """Ask for the monitoring mode and an export directory."""
    from rich.prompt import Confirm, Prompt

    from dlp_impact.catalog import MODE_CHECKS

    console = dashboard.console
    for mode, names in MODE_CHECKS.items():
        line = f"  {mode.value:<12} {', '.join(names)}"
        if console is not None:
            console.print(line, markup=False, highlight=False)
        else:
            print(line)

    mode = Prompt.ask(
        "Monitoring mode",
        choices=[m.value for m in MonitoringMode],
        default=config.mode,
        console=console,
    )
    export_dir = config.export_dir
    if not export_dir and Confirm.ask("Export reports?", default=False, console=console):
        export_dir = Prompt.ask("Export directory", default="./dlp_reports", console=console)
    return dataclasses.replace(config, mode=mode, checks=(), export_dir=export_dir)


def _run(config: SuiteConfig, dashboard: ConsoleDashboard) -> tuple[SuiteRun, Any]:
    """Build and run the suite *config* selects; return the run and its collector."""
    from dlp_impact.catalog import CheckContext, build_orchestrator
    from dlp_impact.infrastructure.event_bus import EventBus
    from dlp_impact.measurement.collector import SuiteCollector

    bus = EventBus()
    collector = SuiteCollector(bus)
    dashboard.follow(bus)
    cancel_event = threading.Event()

    with CheckContext(config, event_bus=bus, cancel_event=cancel_event) as ctx:
        orchestrator = build_orchestrator(config, ctx)
        with _cancel_on_sigint(cancel_event):
            run = orchestrator.run()
    return run, collector


@contextlib.contextmanager
def _cancel_on_sigint(cancel_event: threading.Event) -> Iterator[None]:
    """Turn the first SIGINT into *cancel_event*; a second one interrupts."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum: int, frame: Any) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("\nCancelling after the current tick (Ctrl-C again to abort)...", file=sys.stderr)
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _exit_code(run: SuiteRun) -> int:
    return 130 if run.cancelled else 0


def _export(run: SuiteRun, collector: Any, export_dir: str, plot: bool) -> None:
    from dlp_impact.presentation.export import export_all

    observations = {name: log.observations for name, log in collector.get_all_logs().items()}
    files = export_all(run, export_dir, formats=EXPORT_FORMATS, observations=observations)

    if plot:
        try:
            from dlp_impact.presentation.plots import (
                plot_check_summary,
                plot_observations,
                save_plots,
            )

            figures = [plot_check_summary(run)]
            for r in run:
                log = collector.get_log(r.name)
                if log is not None and log.get_values():
                    figures.append(plot_observations(r.name, log.get_values(), r.limit, r.unit))
            files["png"] = save_plots(figures, export_dir, prefix="dlp_impact")
        except ImportError as exc:
            print(f"Warning: {exc}", file=sys.stderr)

    print(f"Exported to {export_dir}:")
    for fmt, paths in files.items():
        for p in paths:
            print(f"  [{fmt}] {p}")


# =========================================================================
# Subcommand handlers
# =========================================================================

def _cmd_check(args: argparse.Namespace) -> int:
    """Handle the ``check`` subcommand."""
    dashboard = _dashboard(args)
    try:
        config = _load_suite_config(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 1
    config = dataclasses.replace(config, checks=(args.name,))

    try:
        run, collector = _run(config, dashboard)
    except OrchestrationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if run.check_results:
        result = run.check_results[0]
        dashboard.print_check(result)
        log = collector.get_log(result.name)
        if log is not None:
            dashboard.print_observations(result.name, log.get_values(), result.unit)
    if run.cancelled:
        dashboard.print_suite(run)
    dashboard.print_failures(collector.failure_context())

    if config.export_dir and run.check_results:
        _export(run, collector, config.export_dir, args.plot)
    return _exit_code(run)


def _cmd_suite(args: argparse.Namespace) -> int:
    """Handle the ``suite`` subcommand."""
    dashboard = _dashboard(args)
    try:
        config = _load_suite_config(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 1

    interactive = args.interactive
    if interactive is None:
        interactive = (
            not config.non_interactive
            and args.mode is None
            and args.checks is None
            and not config.checks
            and sys.stdin.isatty()
        )
    if interactive:
        config = _prompt_selection(config, dashboard)

    try:
        run, collector = _run(config, dashboard)
    except OrchestrationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    dashboard.print_suite(run)
    dashboard.print_failures(collector.failure_context())

    if config.export_dir and run.check_results:
        _export(run, collector, config.export_dir, args.plot)
    return _exit_code(run)


def _cmd_report(args: argparse.Namespace) -> int:
    """Handle the ``report`` subcommand."""
    from dlp_impact.measurement.suite import Orchestrator
    from dlp_impact.presentation.export import load_suite_run

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        run = load_suite_run(input_path)
    except (OSError, ValueError, KeyError) as exc:
        print(f"Error reading {input_path}: {exc}", file=sys.stderr)
        return 1

    if args.format == "json":
        print(json.dumps(run.to_dict(), indent=2, default=str))
    elif args.format == "summary":
        print(Orchestrator.format_summary(run))
    else:
        _dashboard(args).print_suite(run)
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    from dlp_impact import __version__
    from dlp_impact.catalog import DEFAULT_THRESHOLDS, MODE_CHECKS
    from dlp_impact.infrastructure.registry import registry

    print(f"dlp-impact v{__version__}")
    print()

    deps = {
        "numpy": "Summary statistics (required)",
        "psutil": "Process, disk and network counters (required)",
        "httpx": "Compliance API client (required)",
        "yaml": "YAML configuration files (required)",
        "rich": "Console dashboard and prompts (required)",
        "matplotlib": "Charts (optional, viz extra)",
    }
    print("Dependencies:")
    for pkg, desc in deps.items():
        try:
            mod = __import__(pkg)
            version = getattr(mod, "__version__", "unknown")
            print(f"  [installed] {pkg} {version} -- {desc}")
        except ImportError:
            print(f"  [missing]   {pkg} -- {desc}")
    print()

    print("Registered Components:")
    for category in sorted(registry.list_categories()):
        names = registry.list_category(category)
        print(f"  {category}: {', '.join(names) if names else '(empty)'}")
    print()

    print("Monitoring Modes:")
    for mode, names in MODE_CHECKS.items():
        print(f"  {mode.value} -- {', '.join(names)}")
    print()

    print("Default Thresholds:")
    _dashboard(args).print_thresholds(DEFAULT_THRESHOLDS)

    sampling = SamplingConfig()
    print()
    print(
        f"Sampling defaults: {sampling.tick_count} samples, "
        f"{sampling.tick_interval}s apart (max {sampling.max_ticks})"
    )
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from dlp_impact import __version__
        print(f"dlp-impact {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    handlers: dict[str, Any] = {
        "check": _cmd_check,
        "suite": _cmd_suite,
        "report": _cmd_report,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except Exception as exc:
        logger.debug("unhandled error", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)
